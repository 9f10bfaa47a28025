from unfold.schemas.schemas import (
    Kind, is_addressable, is_replaceable,
    Event, ProfileMetadata,
    SiteConfig, AppData, CategoryData, PostData, PLACEHOLDER_TITLE,
    RenderRequest, RenderResponse, RENDER_FORMATS,
)

__all__ = [
    "Kind", "is_addressable", "is_replaceable",
    "Event", "ProfileMetadata",
    "SiteConfig", "AppData", "CategoryData", "PostData", "PLACEHOLDER_TITLE",
    "RenderRequest", "RenderResponse", "RENDER_FORMATS",
]
