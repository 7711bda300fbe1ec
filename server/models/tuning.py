"""Tuning API models: layer replacement and resolution preview."""

from typing import List, Optional

from pydantic import Field

from ranker.models import TuningConfig
from ranker.models.common import WireModel
from ranker.models.config import ConfigLevel


class UpdateLayerRequest(WireModel):
    level: ConfigLevel
    level_id: Optional[str] = None
    config: TuningConfig

    def stamped_config(self) -> TuningConfig:
        """The layer with level and id taken from the request, not from its body."""
        level_id = "global" if self.level == "global" else self.level_id
        return self.config.model_copy(update={"level": self.level, "level_id": level_id})


class ResolvePreviewResponse(WireModel):
    scenario: str
    config: TuningConfig
    inheritance_chain: List[str] = Field(default_factory=list)
