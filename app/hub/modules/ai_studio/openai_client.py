"""
Thin wrapper around the OpenAI SDK for alliance marketing copy and artwork.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

TONE_INSTRUCTIONS = {
    "formal": "Write in a formal, professional tone suitable for official alliance communications.",
    "casual": "Write in a friendly, approachable tone that welcomes new members.",
    "enthusiastic": "Write with energy and excitement to showcase alliance spirit.",
    "professional": "Write in a polished, business-like tone that conveys strength and reliability.",
}

IMAGE_TYPE_ENHANCEMENTS = {
    "banner": "Create a wide banner image, cinematic style, high detail, 16:9 aspect ratio.",
    "emblem": "Create a circular emblem, symbolic design, clean lines, suitable for gaming alliance logo.",
    "logo_draft": "Create a logo concept, simple but impactful, gaming aesthetic.",
}

DOWNLOAD_TIMEOUT_SECONDS = 60


class AIError(RuntimeError):
    pass


class AINotConfigured(AIError):
    pass


@dataclass(frozen=True)
class GeneratedImage:
    url: str
    revised_prompt: str


def build_presentation_prompts(bullet_points: list[str], tone: str) -> tuple[str, str]:
    system_prompt = (
        f"You are writing an alliance presentation for a gaming alliance. {TONE_INSTRUCTIONS[tone]}\n"
        "Take the provided bullet points and expand them into a compelling 3-4 paragraph presentation "
        "that showcases the alliance's strengths and attracts new members.\n"
        "Keep the tone consistent and make it engaging for gaming community members."
    )
    numbered = "\n".join(f"{i}. {point}" for i, point in enumerate(bullet_points, start=1))
    user_prompt = f"Bullet points about the alliance:\n{numbered}\n\nWrite an alliance presentation:"
    return system_prompt, user_prompt


def enhance_image_prompt(prompt: str, image_type: str) -> str:
    return f"{IMAGE_TYPE_ENHANCEMENTS[image_type]} {prompt}"


class AIClient:
    def __init__(self, *, api_key: str, text_model: str, image_model: str):
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model

    def _client(self):
        if not self.api_key:
            raise AINotConfigured("OpenAI API key not configured")
        from openai import OpenAI

        return OpenAI(api_key=self.api_key)

    def generate_presentation_text(self, bullet_points: list[str], tone: str) -> str:
        client = self._client()
        system_prompt, user_prompt = build_presentation_prompts(bullet_points, tone)
        try:
            completion = client.chat.completions.create(
                model=self.text_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=1000,
                temperature=0.8,
            )
        except Exception as e:
            logger.exception("Presentation text generation failed")
            raise AIError("Failed to generate presentation text. Please try again.") from e
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    def generate_image(self, prompt: str, image_type: str) -> GeneratedImage:
        client = self._client()
        enhanced = enhance_image_prompt(prompt, image_type)
        try:
            response = client.images.generate(
                model=self.image_model,
                prompt=enhanced,
                size="1024x1024",
                quality="standard",
                n=1,
            )
        except Exception as e:
            logger.exception("Image generation failed")
            raise AIError("Failed to generate image. Please try again.") from e
        data = response.data[0] if response.data else None
        if not data or not data.url:
            raise AIError("No image generated")
        return GeneratedImage(url=data.url, revised_prompt=data.revised_prompt or enhanced)

    def download_image(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=DOWNLOAD_TIMEOUT_SECONDS)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Image download failed: %s", e)
            raise AIError("Failed to download image") from e
        return resp.content


def ai_client_from_config(config: dict) -> AIClient:
    return AIClient(
        api_key=(config.get("OPENAI_API_KEY") or "").strip(),
        text_model=config.get("OPENAI_TEXT_MODEL") or "gpt-4-turbo-preview",
        image_model=config.get("OPENAI_IMAGE_MODEL") or "dall-e-3",
    )
