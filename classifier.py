"""
Waste photo classification.

The uploaded image is stored in S3 under a random key, then its public URL is
sent to a hosted vision-language model (Groq, via its OpenAI-compatible API)
together with a fixed prompt. The model must answer with a JSON object naming
one of the seven healthcare waste categories and a list of treatment steps;
anything else is rejected as a ClassificationError.
"""
import io
import json
import logging
import os
from functools import lru_cache
from typing import Optional
from uuid import uuid4

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from openai import OpenAI, OpenAIError
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError as SchemaError

from config import Settings, get_settings
from errors import ClassificationError, ValidationError
from schemas import ClassificationResult, VisionReply

logger = logging.getLogger(__name__)

CATEGORIES = (
    "Infectious Waste",
    "Sharps Waste",
    "Pathological Waste",
    "Pharmaceutical Waste",
    "Chemical Waste",
    "Radioactive Waste",
    "Non-Hazardous General Waste",
)
LABELS = frozenset(c.lower() for c in CATEGORIES)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

PROMPT = (
    "You are an expert in healthcare waste management.\n\n"
    "Step 1: Classify the type of waste shown in the image into EXACTLY one of the following categories:\n"
    + "\n".join(f"- {c}" for c in CATEGORIES)
    + "\n\n"
    "Step 2: For the classified type, list the most appropriate disposal and recycling or treatment methods.\n\n"
    "Respond with a single JSON object and nothing else, in this format:\n"
    '{"category": "<one of the seven categories>", '
    '"treatment": ["<method 1>", "<method 2>", "<method 3>"]}'
)


def mime_type_from_ext(ext: str) -> str:
    return MIME_TYPES.get(ext.lower(), DEFAULT_MIME_TYPE)


def ensure_image(data: bytes) -> None:
    if not data:
        raise ValidationError("No image file sent.")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Image.DecompressionBombError:
        raise ValidationError("Uploaded image is too large.") from None
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError("Uploaded file is not a valid image.") from None


def parse_reply(content: Optional[str]) -> ClassificationResult:
    """Validate the model's JSON answer. Raises ClassificationError on any mismatch."""
    if not content:
        raise ClassificationError("Model returned an empty reply.")
    try:
        reply = VisionReply.model_validate(json.loads(content))
    except (json.JSONDecodeError, SchemaError):
        logger.warning("Unparseable model reply", extra={"reply_preview": content[:200]})
        raise ClassificationError("Model reply did not match the expected format.") from None

    label = reply.category.replace("Category:", "").strip().lower()
    if label not in LABELS:
        logger.warning("Unknown category from model", extra={"label": label})
        raise ClassificationError(f"Model returned an unknown category: {label}")

    treatment = [step.strip().lstrip("-").strip() for step in reply.treatment]
    treatment = [step for step in treatment if step]
    if not treatment:
        raise ClassificationError("Model returned no treatment methods.")
    return ClassificationResult(label=label, treatment=treatment)


class ObjectStorage:
    def __init__(self, settings: Settings, s3_client: Optional[BaseClient] = None):
        self.settings = settings
        self._s3_client = s3_client or boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=Config(
                connect_timeout=settings.storage_timeout_seconds,
                read_timeout=settings.storage_timeout_seconds,
                retries={"max_attempts": 1},
            ),
        )

    def build_object_key(self, filename: str) -> str:
        _, ext = os.path.splitext(filename or "")
        prefix = self.settings.s3_key_prefix.strip("/")
        return f"{prefix}/{uuid4().hex}{ext.lower()}"

    def public_url(self, key: str) -> str:
        return f"https://{self.settings.s3_bucket_name}.s3.{self.settings.aws_region}.amazonaws.com/{key}"

    def upload(self, data: bytes, filename: str) -> str:
        key = self.build_object_key(filename)
        _, ext = os.path.splitext(key)
        self._s3_client.put_object(
            Bucket=self.settings.s3_bucket_name,
            Key=key,
            Body=data,
            ContentType=mime_type_from_ext(ext),
        )
        logger.info("Image uploaded", extra={"key": key, "size": len(data)})
        return self.public_url(key)


class VisionModel:
    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.settings = settings
        self._client = client

    def ensure_configured(self) -> None:
        if self._client is None and not self.settings.groq_api_key:
            raise ClassificationError("GROQ_API_KEY is not configured.")

    @property
    def client(self) -> OpenAI:
        """Built on first use so a missing API key only breaks classification."""
        if self._client is None:
            self.ensure_configured()
            self._client = OpenAI(
                api_key=self.settings.groq_api_key,
                base_url=self.settings.vision_base_url,
                timeout=self.settings.vision_timeout_seconds,
                max_retries=0,
            )
        return self._client

    def describe(self, image_url: str) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.settings.vision_model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
            max_tokens=self.settings.vision_max_tokens,
            response_format={"type": "json_object"},
        )
        choices = getattr(response, "choices", None)
        message = getattr(choices[0], "message", None) if choices else None
        if message is None:
            raise ClassificationError("Model returned no choices.")
        return message.content


class WasteClassifier:
    def __init__(self, storage: ObjectStorage, model: VisionModel):
        self.storage = storage
        self.model = model

    def classify(self, image_bytes: bytes, filename: str) -> ClassificationResult:
        ensure_image(image_bytes)
        logger.info("Classification requested", extra={"upload_filename": filename})
        # fail before anything is written to the bucket
        self.model.ensure_configured()
        try:
            image_url = self.storage.upload(image_bytes, filename)
            content = self.model.describe(image_url)
        except (BotoCoreError, ClientError, OpenAIError) as exc:
            logger.exception("Classification call failed")
            raise ClassificationError() from exc
        result = parse_reply(content)
        logger.info("Classification completed", extra={"label": result.label})
        return result


@lru_cache
def get_classifier() -> WasteClassifier:
    settings = get_settings()
    return WasteClassifier(ObjectStorage(settings), VisionModel(settings))
