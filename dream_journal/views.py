# views.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import EntryNotFound, StorageError, ValidationError
from .models import ChatMessage, DreamAnalysis
from .serializers import to_record
from .store import EntryStore

router = APIRouter(prefix="/entries", tags=["entries"])


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EntryCreate(_Body):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    lucidity_level: int = 1
    mood_level: int = 3
    clarity: int = 3
    emotions: List[str] = []
    tags: List[str] = []


class EntryUpdate(_Body):
    title: Optional[str] = None
    content: Optional[str] = None
    lucidity_level: Optional[int] = None
    mood_level: Optional[int] = None
    clarity: Optional[int] = None
    emotions: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class AnalysisUpdate(_Body):
    messages: List[ChatMessage] = Field(min_length=1)


def get_store(request: Request) -> EntryStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Entry store not initialized")
    return store


def _not_found():
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found.")


def _invalid(error: ValidationError):
    return HTTPException(status_code=422, detail=str(error))


def _write_failed():
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Could not save journal entries.",
    )


@router.get("")
async def get_entries(include_archived: bool = True, store: EntryStore = Depends(get_store)):
    """List entries, newest first."""
    entries = sorted(store.entries, key=lambda entry: entry.date, reverse=True)
    if not include_archived:
        entries = [entry for entry in entries if entry.show_in_journal]
    return [to_record(entry) for entry in entries]


@router.get("/{entry_id}")
async def get_entry(entry_id: str, store: EntryStore = Depends(get_store)):
    try:
        return to_record(store.get(entry_id))
    except EntryNotFound:
        raise _not_found()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_entry(body: EntryCreate, store: EntryStore = Depends(get_store)):
    """Create a new journal entry."""
    try:
        entry = store.create(**body.model_dump())
    except ValidationError as e:
        raise _invalid(e)
    except StorageError:
        raise _write_failed()
    return to_record(entry)


@router.patch("/{entry_id}")
async def update_entry(entry_id: str, body: EntryUpdate, store: EntryStore = Depends(get_store)):
    """Update the fields present in the body."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    try:
        entry = store.patch(entry_id, **changes)
    except EntryNotFound:
        raise _not_found()
    except ValidationError as e:
        raise _invalid(e)
    except StorageError:
        raise _write_failed()
    return to_record(entry)


@router.post("/{entry_id}/archive")
async def archive_entry(entry_id: str, store: EntryStore = Depends(get_store)):
    """Move the entry out of the journal and into history."""
    try:
        return to_record(store.archive(entry_id))
    except EntryNotFound:
        raise _not_found()
    except StorageError:
        raise _write_failed()


@router.post("/{entry_id}/restore")
async def restore_entry(entry_id: str, store: EntryStore = Depends(get_store)):
    try:
        return to_record(store.restore(entry_id))
    except EntryNotFound:
        raise _not_found()
    except StorageError:
        raise _write_failed()


@router.put("/{entry_id}/analysis")
async def attach_analysis(entry_id: str, body: AnalysisUpdate, store: EntryStore = Depends(get_store)):
    """Attach (or replace) the saved chat transcript of an entry."""
    try:
        entry = store.attach_analysis(entry_id, DreamAnalysis(messages=tuple(body.messages)))
    except EntryNotFound:
        raise _not_found()
    except StorageError:
        raise _write_failed()
    return to_record(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(entry_id: str, store: EntryStore = Depends(get_store)):
    """Delete a journal entry permanently."""
    try:
        store.delete(entry_id)
    except EntryNotFound:
        raise _not_found()
    except StorageError:
        raise _write_failed()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
