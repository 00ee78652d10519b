"""
Keyword-based scene, mood, object and emotion extraction for VoxRelay.

Pure, table-driven functions over the free-text description returned by
the vision provider.  Matching is case-insensitive substring search, so
the result is a deterministic function of the input text.
"""

from __future__ import annotations

from vr_common.models import VideoAnalysis

KNOWN_OBJECTS: tuple[str, ...] = (
    "laptop", "computer", "monitor", "screen", "keyboard", "mouse",
    "chair", "desk", "table", "bed", "sofa",
    "book", "phone", "coffee", "cup", "bottle",
    "plant", "flower", "tree", "window", "door",
    "light", "lamp", "camera", "microphone",
    "cat", "dog", "bird", "car", "bicycle",
    "headphones", "glasses", "clock", "picture", "frame",
)

# First matching row wins.
SCENE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("office/workspace", ("office", "workspace", "desk")),
    ("kitchen", ("kitchen",)),
    ("bedroom", ("bedroom", "bed")),
    ("living room", ("living room", "sofa", "couch")),
    ("outdoor", ("outdoor", "outside", "park")),
    ("bathroom", ("bathroom",)),
)
DEFAULT_SCENE = "indoor space"

# Angry before sad, and sad before happy: "unhappy" contains "happy".
MOOD_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("angry", ("angry", "mad", "furious", "frown", "scowl", "irate")),
    ("sad", ("sad", "melancholy", "unhappy", "sorrowful", "down", "depressed")),
    ("happy", ("happy", "joy", "smiling", "cheerful", "delighted")),
    ("excited", ("excited", "energetic", "enthusiastic", "thrilled")),
    ("focused", ("focused", "concentrated", "attentive")),
    ("calm", ("calm", "peaceful", "relaxed", "serene")),
    ("stressed", ("stressed", "tense", "anxious", "worried")),
)
DEFAULT_MOOD = "neutral"

# emotion -> (indicator words, score per hit)
EMOTION_RULES: dict[str, tuple[tuple[str, ...], float]] = {
    "happiness": (
        ("happy", "joy", "joyful", "smiling", "cheerful", "pleased",
         "delighted", "content", "upbeat"),
        0.2,
    ),
    "sadness": (
        ("sad", "melancholy", "down", "depressed", "gloomy", "unhappy", "sorrowful"),
        0.25,
    ),
    "excitement": (
        ("excited", "energetic", "enthusiastic", "thrilled", "animated", "vibrant"),
        0.25,
    ),
    "calmness": (
        ("calm", "peaceful", "relaxed", "serene", "tranquil", "composed"),
        0.25,
    ),
    "stress": (
        ("stressed", "tense", "anxious", "worried", "overwhelmed", "frantic", "agitated"),
        0.25,
    ),
    "focus": (
        ("focused", "concentrated", "attentive", "engaged", "absorbed"),
        0.25,
    ),
}
NEUTRAL_SCORE = 0.7


def extract_objects(text: str) -> list[str]:
    """Return the known objects mentioned in *text*, in vocabulary order."""
    lower = text.lower()
    return [obj for obj in KNOWN_OBJECTS if obj in lower]


def extract_scene(text: str) -> str:
    """Return the scene label for *text*."""
    return _first_match(text, SCENE_RULES, DEFAULT_SCENE)


def extract_mood(text: str) -> str:
    """Return the mood label for *text*."""
    return _first_match(text, MOOD_RULES, DEFAULT_MOOD)


def extract_emotions(text: str) -> dict[str, float]:
    """Score each emotion by counting indicator words in *text*.

    Each distinct indicator found adds its row's weight, capped at 1.0.
    When no emotion scores above zero, ``{"neutral": 0.7}`` is added.
    """
    lower = text.lower()
    emotions: dict[str, float] = {}
    for emotion, (words, weight) in EMOTION_RULES.items():
        hits = sum(1 for word in words if word in lower)
        emotions[emotion] = min(round(hits * weight, 4), 1.0)

    if sum(emotions.values()) == 0:
        emotions["neutral"] = NEUTRAL_SCORE
    return emotions


def describe(text: str) -> VideoAnalysis:
    """Build a :class:`VideoAnalysis` from a free-text frame description."""
    return VideoAnalysis(
        description=text,
        objects=extract_objects(text),
        scene=extract_scene(text),
        mood=extract_mood(text),
        emotions=extract_emotions(text),
    )


def _first_match(
    text: str,
    rules: tuple[tuple[str, tuple[str, ...]], ...],
    default: str,
) -> str:
    lower = text.lower()
    for label, keywords in rules:
        if any(keyword in lower for keyword in keywords):
            return label
    return default
