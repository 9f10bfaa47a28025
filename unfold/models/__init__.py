from unfold.models.models import EventRecord, Site

__all__ = ["EventRecord", "Site"]
