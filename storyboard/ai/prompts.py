"""Prompt templates for the Gemini text and image calls."""

from __future__ import annotations

from typing import Any

IMAGE_STYLE_SUFFIX = """
STYLE REQUIREMENTS:
- Aesthetic: "Internet Meme" / "Badly Drawn" digital art.
- Technique: Rough mouse-drawn lines, bucket-fill flat colors, high contrast.
- COMPOSITION: Fullscreen artwork only.
- NEGATIVE PROMPT: Do NOT include the MS Paint user interface, toolbars, window borders, menus, or mouse cursors. Do NOT write the words "MS Paint" or the prompt text on the image. Just the artwork itself."""

ANALYZE_SYSTEM_INSTRUCTION = """
You are a granular storyboard engine for a fast-paced YouTube explanation channel (MS Paint style).

GOAL: EXTREME GRANULARITY (40+ SCENES)
- Break the script into tiny fragments.
- Do NOT group full sentences. Split long sentences into 2 or 3 distinct visual beats.
- Target density: 1 scene every 2-3 seconds of reading time.

Visual style: "MS Paint" aesthetic. Badly drawn, funny, internet meme style. Stick figures are good.

For each scene:
1. narration: the specific phrase (often just half a sentence).
2. visualDescription: simple concept.
3. imagePrompt: a prompt for the image model (MS Paint style).
"""

ANALYZE_RESPONSE_SCHEMA: dict[str, Any] = {
  "type": "OBJECT",
  "properties": {
    "scenes": {
      "type": "ARRAY",
      "items": {
        "type": "OBJECT",
        "properties": {
          "narration": {"type": "STRING"},
          "visualDescription": {"type": "STRING"},
          "imagePrompt": {"type": "STRING", "description": "Prompt for the image model. Start with 'An MS Paint style digital drawing of...'"},
        },
        "required": ["narration", "visualDescription", "imagePrompt"],
      },
    }
  },
}

TEXT_OVERLAY_RESPONSE_SCHEMA: dict[str, Any] = {
  "type": "OBJECT",
  "properties": {"heading": {"type": "STRING"}, "points": {"type": "ARRAY", "items": {"type": "STRING"}}},
  "required": ["heading", "points"],
}

REWRITE_INSTRUCTIONS: dict[str, str] = {
  "funny": "Make this text funnier, wittier, and more like an internet meme script.",
  "concise": "Shorten this text. Keep the core meaning but remove fluff.",
  "detailed": "Expand on this text. Add more context and details.",
  "professional": "Make this text sound more professional and authoritative.",
}

SCRIPT_LENGTH_INSTRUCTIONS: dict[str, str] = {
  "8-12 min": "Make it detailed and in-depth (approx 8-12 minutes read time, ~1500-2000 words).",
  "15 min": "Make it an extensive deep dive (approx 15 minutes read time, ~2500+ words).",
}
DEFAULT_LENGTH_INSTRUCTION = "Keep it concise (approx 1 minute read time, ~150-200 words)."


def build_image_prompt(prompt: str) -> str:
  return f"{prompt.rstrip('. ')}.{IMAGE_STYLE_SUFFIX}"


def build_analyze_prompt(script: str) -> str:
  return f'Analyze this script. Break it down into AS MANY small scenes as possible. Aim for 40+ scenes if the length allows.\n\nScript:\n"{script}"\n\nReturn JSON.'


def build_text_overlay_prompt(narration: str) -> str:
  return f"""Analyze this narration and create a MINIMALIST VISUAL EQUATION or PUNCHLINE for a video slide.

Narration: "{narration}"

STYLE GUIDE:
- Do NOT use sentences.
- Use symbols where possible: >, <, =, vs, +, ->.
- Make it instant to understand.

Examples:
- "Rich people have more power than poor people." -> Heading: "THE REALITY", Points: ["Money = Power"]
- "We often ignore facts because our emotions take over." -> Heading: "BIAS", Points: ["Emotions > Facts"]
- "There are two choices: speed or safety." -> Heading: "THE TRADE-OFF", Points: ["Speed vs Safety"]

Output: heading uppercase, 1-3 words. Points: 1 or 2 very short lines.

Return JSON."""


def build_refine_prompt(prompt: str) -> str:
  return (
    'Rewrite the following image prompt to be more descriptive, funny, and specific for an "MS Paint" style meme image. '
    "Keep it under 50 words. Ensure it is different from the original.\n\n"
    f'Original Prompt: "{prompt}"'
  )


def build_rewrite_prompt(text: str, mode: str) -> str:
  instruction = REWRITE_INSTRUCTIONS[mode]
  return f'Rewrite the following text segment for a YouTube video script.\n\nInstruction: {instruction}\n\nOriginal Text:\n"{text}"\n\nReturn ONLY the rewritten text. Do not add quotes or explanations.'


def build_script_prompt(topic: str, duration: str) -> str:
  length_instruction = SCRIPT_LENGTH_INSTRUCTIONS.get(duration, DEFAULT_LENGTH_INSTRUCTION)
  return f"""You are a professional YouTube scriptwriter for a fast-paced, "MS Paint" style explanation channel.

Task: Write a complete script about "{topic}".
Duration: {duration}.
Instruction: {length_instruction}

Requirements:
- Highly engaging, funny, and conversational.
- Break complex ideas into simple terms.
- Write ONLY the spoken word (voiceover). No scene descriptions or visual cues.
- Use short, punchy sentences."""
