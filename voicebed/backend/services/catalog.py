from __future__ import annotations

from voicebed.backend.types import (
    BackgroundTrackOption,
    LanguageOption,
    StyleOption,
    VoiceOption,
)

CUSTOM_VOICE_ID = "custom"
NO_STYLE_ID = "none"
NO_BACKGROUND_ID = "none"
CUSTOM_BACKGROUND_ID = "custom"

VOICES: tuple[VoiceOption, ...] = (
    VoiceOption(id="Puck", name="Rohan", gender="Male", description="Soft, slightly raspy, articulate."),
    VoiceOption(id="Charon", name="Vikram", gender="Male", description="Deep, resonant, authoritative."),
    VoiceOption(id="Kore", name="Meera", gender="Female", description="Calm, soothing, clear."),
    VoiceOption(id="Fenrir", name="Kabir", gender="Male", description="Energetic, fast-paced, intense."),
    VoiceOption(id="Zephyr", name="Aditi", gender="Female", description="Bright, friendly, conversational."),
    VoiceOption(
        id=CUSTOM_VOICE_ID,
        name="Custom Voice ID",
        gender="Any",
        description="Enter a valid Gemini Voice ID manually.",
    ),
)

LANGUAGES: tuple[LanguageOption, ...] = (
    LanguageOption(code="en-US", name="English (US)", flag="\U0001F1FA\U0001F1F8"),
    LanguageOption(code="en-GB", name="English (UK)", flag="\U0001F1EC\U0001F1E7"),
    LanguageOption(code="en-IN", name="English (India)", flag="\U0001F1EE\U0001F1F3"),
    LanguageOption(code="hi-IN", name="Hindi (India)", flag="\U0001F1EE\U0001F1F3"),
    LanguageOption(code="es-ES", name="Spanish (Spain)", flag="\U0001F1EA\U0001F1F8"),
    LanguageOption(code="fr-FR", name="French (France)", flag="\U0001F1EB\U0001F1F7"),
    LanguageOption(code="ja-JP", name="Japanese (Japan)", flag="\U0001F1EF\U0001F1F5"),
)

_SPEAKING = "Speaking Styles"
_POSITIVE = "Positive Emotions"
_NEGATIVE = "Negative/Complex Emotions"

STYLES: tuple[StyleOption, ...] = (
    StyleOption(id=NO_STYLE_ID, label="Natural", prompt_prefix="", category="General"),
    StyleOption(id="narrative", label="Narrative", prompt_prefix="Speak in a narrative storytelling style: ", category=_SPEAKING),
    StyleOption(id="conversational", label="Conversational", prompt_prefix="Speak in a natural conversational tone: ", category=_SPEAKING),
    StyleOption(id="pace", label="Pace", prompt_prefix="Speak with a varied and engaging pace: ", category=_SPEAKING),
    StyleOption(id="pronunciation", label="Pronunciation", prompt_prefix="Speak with very clear and precise pronunciation: ", category=_SPEAKING),
    StyleOption(id="accents", label="Accents", prompt_prefix="Speak with a distinct character accent: ", category=_SPEAKING),
    StyleOption(id="dialects", label="Dialects", prompt_prefix="Speak with a regional dialect flair: ", category=_SPEAKING),
    StyleOption(id="pauses", label="Pauses", prompt_prefix="Speak with dramatic pauses for effect: ", category=_SPEAKING),
    StyleOption(id="gaps", label="Gaps", prompt_prefix="Speak with natural gaps between phrases: ", category=_SPEAKING),
    StyleOption(id="happy", label="Happy", prompt_prefix="Say happily: ", category=_POSITIVE),
    StyleOption(id="excited", label="Excited", prompt_prefix="Say excitedly: ", category=_POSITIVE),
    StyleOption(id="joyful", label="Joyful", prompt_prefix="Speak with pure joy: ", category=_POSITIVE),
    StyleOption(id="surprised", label="Surprised", prompt_prefix="Speak with surprise: ", category=_POSITIVE),
    StyleOption(id="hopeful", label="Hopeful", prompt_prefix="Speak with a hopeful tone: ", category=_POSITIVE),
    StyleOption(id="calm", label="Calm", prompt_prefix="Speak calmly: ", category=_POSITIVE),
    StyleOption(id="satisfied", label="Satisfied", prompt_prefix="Speak with a satisfied tone: ", category=_POSITIVE),
    StyleOption(id="peaceful", label="Peaceful", prompt_prefix="Speak peacefully: ", category=_POSITIVE),
    StyleOption(id="tired", label="Tired", prompt_prefix="Speak in a tired voice: ", category=_NEGATIVE),
    StyleOption(id="bored", label="Bored", prompt_prefix="Speak in a bored tone: ", category=_NEGATIVE),
    StyleOption(id="angry", label="Angry", prompt_prefix="Say angrily: ", category=_NEGATIVE),
    StyleOption(id="sad", label="Sad", prompt_prefix="Say sadly: ", category=_NEGATIVE),
    StyleOption(id="scared", label="Scared", prompt_prefix="Speak in a scared voice: ", category=_NEGATIVE),
    StyleOption(id="spooky_whisper", label="Spooky whisper", prompt_prefix="Whisper spookily: ", category=_NEGATIVE),
    StyleOption(id="anxious", label="Anxious", prompt_prefix="Speak with anxiety: ", category=_NEGATIVE),
    StyleOption(id="frustrated", label="Frustrated", prompt_prefix="Speak with frustration: ", category=_NEGATIVE),
)

BACKGROUND_TRACKS: tuple[BackgroundTrackOption, ...] = (
    BackgroundTrackOption(id=NO_BACKGROUND_ID, name="None", type="synth"),
    BackgroundTrackOption(id=CUSTOM_BACKGROUND_ID, name="Custom Upload (MP3/WAV)", type="file"),
    BackgroundTrackOption(id="calm", name="Calm (Ambient Pad)", type="synth", synth_type="calm"),
    BackgroundTrackOption(id="inspirational", name="Inspirational (Bright)", type="synth", synth_type="inspirational"),
    BackgroundTrackOption(id="lofi", name="Focus (Lo-Fi Noise)", type="synth", synth_type="lofi"),
)

_STYLES_BY_ID = {s.id: s for s in STYLES}
_BACKGROUNDS_BY_ID = {b.id: b for b in BACKGROUND_TRACKS}
_LANGUAGE_CODES = frozenset(lang.code for lang in LANGUAGES)


def find_style(style_id: str) -> StyleOption | None:
    return _STYLES_BY_ID.get(style_id)


def find_background(track_id: str) -> BackgroundTrackOption | None:
    return _BACKGROUNDS_BY_ID.get(track_id)


def is_known_language(code: str) -> bool:
    return code in _LANGUAGE_CODES
