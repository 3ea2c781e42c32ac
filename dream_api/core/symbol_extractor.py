"""Keyword reflection that works without the completion provider."""
from typing import Dict, List

DREAM_KEYWORDS: Dict[str, List[str]] = {
    "emotions": ["happy", "sad", "angry", "scared", "peaceful", "anxious", "excited", "confused"],
    "places": ["house", "school", "work", "beach", "forest", "city", "mountains", "sky"],
    "actions": ["running", "flying", "falling", "swimming", "talking", "searching", "hiding", "fighting"],
    "elements": ["water", "fire", "earth", "air", "light", "darkness", "colors", "nature"],
    "people": ["family", "friends", "strangers", "children", "parents", "partner", "teacher", "leader"],
}

# (heading, lead-in, [(keyword, reading), ...], reading when no keyword matches)
_SECTIONS = {
    "emotions": (
        "Emotional Elements",
        "Your dream contains {found} emotions, which suggests you may be processing these feelings in your waking life.",
        [
            ("anxious", "The presence of anxiety might indicate underlying concerns or uncertainties."),
            ("peaceful", "The peaceful emotions suggest a period of harmony or resolution in your life."),
        ],
        "These emotions may reflect your current emotional state or desires.",
    ),
    "places": (
        "Setting Analysis",
        "The dream takes place in/around {found}.",
        [
            ("house", "Houses often represent the self or personal life."),
            ("work", "Work settings might reflect professional ambitions or concerns."),
        ],
        "These locations may symbolize different aspects of your life journey.",
    ),
    "actions": (
        "Actions and Movement",
        "In your dream, there is {found}.",
        [
            ("flying", "Flying often represents freedom, transcendence, or escape from limitations."),
            ("falling", "Falling might indicate feelings of losing control or fear of failure."),
        ],
        "These actions may represent your current life direction or desires.",
    ),
    "elements": (
        "Symbolic Elements",
        "The presence of {found} is significant.",
        [
            ("water", "Water often symbolizes emotions and the unconscious mind."),
            ("light", "Light might represent clarity, insight, or hope."),
        ],
        "These elements may represent different aspects of your psyche.",
    ),
    "people": (
        "People and Relationships",
        "The dream involves {found}.",
        [
            ("family", "Family members in dreams often represent close personal relationships or aspects of yourself."),
            ("strangers", "Strangers might represent unknown aspects of yourself or new possibilities."),
        ],
        "These relationships may reflect important connections or aspects of your social life.",
    ),
}

GENERAL_INTERPRETATION = (
    "General Interpretation:\nWhile your dream doesn't contain common symbolic elements, it's important "
    "to consider the overall feeling and context. Dreams often reflect our subconscious thoughts, "
    "emotions, and experiences. Consider how this dream might relate to your current life situations "
    "or emotional state."
)

CLOSING = (
    "Remember that dream interpretation is highly personal, and these insights are meant to help you "
    "reflect on possible meanings. The most valuable interpretation often comes from your own intuition "
    "about what these symbols and experiences mean to you personally."
)


def find_relevant_keywords(dream: str) -> Dict[str, List[str]]:
    """Keywords of each group that occur (as substrings) in ``dream``."""
    lower_dream = dream.lower()
    return {
        group: [word for word in words if word in lower_dream]
        for group, words in DREAM_KEYWORDS.items()
    }


def generate_offline_analysis(dream: str) -> str:
    keywords = find_relevant_keywords(dream)
    parts = [
        "Dream Analysis:",
        "Thank you for sharing your dream. Let me analyze its key elements and potential meanings.",
    ]

    for group, (heading, lead_in, readings, default) in _SECTIONS.items():
        found = keywords[group]
        if not found:
            continue
        reading = next((text for keyword, text in readings if keyword in found), default)
        parts.append(f"{heading}:\n{lead_in.format(found=', '.join(found))} {reading}")

    if not any(keywords.values()):
        parts.append(GENERAL_INTERPRETATION)

    parts.append(CLOSING)
    return "\n\n".join(parts)
