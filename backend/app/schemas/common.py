from pydantic import BaseModel
from typing import List


class ToggleStatusRequest(BaseModel):
    active: bool


class ReorderImagesRequest(BaseModel):
    image_ids: List[str]
