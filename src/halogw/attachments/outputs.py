"""Turn generated images into attachment objects."""

from __future__ import annotations

import mimetypes
import posixpath
import time
from typing import Any
from urllib.parse import urlparse

from halogw.attachments.inputs import decoded_size
from halogw.core.errors import AttachmentError
from halogw.llm.schemas import Attachment


def _extension(mime_type: str) -> str:
    return mime_type.split("/")[-1] or "png"


def _filename_from_url(url: str) -> str | None:
    name = posixpath.basename(urlparse(url).path)
    return name if "." in name else None


def attachment_from_base64(
    data: str,
    mime_type: str = "image/png",
    filename: str | None = None,
) -> Attachment:
    try:
        size_bytes: int | None = decoded_size(data)
    except AttachmentError:
        size_bytes = None
    return Attachment(
        type="image",
        mime_type=mime_type,
        data=data,
        filename=filename or f"image-{int(time.time() * 1000)}.{_extension(mime_type)}",
        size_bytes=size_bytes,
    )


def attachment_from_url(
    url: str,
    mime_type: str | None = None,
    filename: str | None = None,
) -> Attachment:
    filename = filename or _filename_from_url(url)
    if mime_type is None:
        guessed = mimetypes.guess_type(filename)[0] if filename else None
        mime_type = guessed or "image/png"
    return Attachment(
        type="image",
        mime_type=mime_type,
        url=url,
        filename=filename or f"image-{int(time.time() * 1000)}.{_extension(mime_type)}",
    )


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def from_image_generation_response(response: Any) -> list[Attachment]:
    """One attachment per generated image; URLs win over inline base64.

    Accepts the SDK's ``ImagesResponse`` or an equivalent dict.
    """
    created = _field(response, "created") or int(time.time())
    output_format = _field(response, "output_format") or "png"
    mime_type = f"image/{output_format}"

    attachments = []
    for index, item in enumerate(_field(response, "data") or []):
        fallback_name = f"generated-image-{created}-{index}.{output_format}"
        url = _field(item, "url")
        b64 = _field(item, "b64_json")
        if url:
            attachment = attachment_from_url(
                url, mime_type=mime_type, filename=_filename_from_url(url) or fallback_name
            )
        elif b64:
            attachment = attachment_from_base64(b64, mime_type=mime_type, filename=fallback_name)
        else:
            continue
        attachments.append(attachment)
    return attachments
