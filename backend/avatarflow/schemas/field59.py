"""Pydantic schema and XML rendering for Field59 video records."""

import xml.etree.ElementTree as ET
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Field59Video(BaseModel):
    """A video to create in Field59 from a source URL."""

    url: str = Field(min_length=1)
    title: str = Field(min_length=1)
    summary: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any):
        """Accept a single tag string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v else []
        return [tag for tag in v if tag]

    def to_xml(self) -> str:
        """Render the ``<video>`` document Field59 expects."""
        root = ET.Element("video")
        ET.SubElement(root, "title").text = self.title
        ET.SubElement(root, "url").text = self.url
        for name in ("summary", "description", "category"):
            value = getattr(self, name)
            if value:
                ET.SubElement(root, name).text = value
        if self.tags:
            tags_el = ET.SubElement(root, "tags")
            for tag in self.tags:
                ET.SubElement(tags_el, "tag").text = tag
        return ET.tostring(root, encoding="unicode", xml_declaration=True)
