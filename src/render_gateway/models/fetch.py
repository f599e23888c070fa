from __future__ import annotations

from pydantic import BaseModel, model_validator


class Screenshot(BaseModel):
    """Full-page capture, base64-encoded so it can travel inside JSON."""

    image_base64: str
    content_type: str


class FetchResult(BaseModel):
    """Rendered page as cached and replayed by the gateway."""

    html: str  # Post-processed markup
    html_content_type: str
    screenshot: Screenshot | None = None
    screenshot_warning: str | None = None

    @model_validator(mode="after")
    def check_screenshot_or_warning(self) -> FetchResult:
        if self.screenshot is not None and self.screenshot_warning is not None:
            raise ValueError("screenshot and screenshot_warning are mutually exclusive")
        return self


class FetchOutput(BaseModel):
    """Response body for ``format=json``."""

    url: str
    html: str
    content_type: str
    screenshot_base64: str | None
    screenshot_content_type: str | None
    screenshot_warning: str | None
    cached: bool


class MarkupOutput(BaseModel):
    """Raw markup response; ``content_type`` becomes the transport content type."""

    html: str
    content_type: str
