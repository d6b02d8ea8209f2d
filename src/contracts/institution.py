from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Institution(BaseModel):
    """
    Data model representing one monitored financial institution.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    # Direct-check URLs, tried in listed order
    urls: List[str] = Field(default_factory=list)
    status_api: Optional[str] = None
    aggregator_id: Optional[str] = None
    initial_baseline_ms: float = 1000.0
    priority_weight: int = 1

    def __repr__(self):
        """
        Return a string representation of the Institution instance.
        """
        return (
            f"Institution(id={self.id}, urls={len(self.urls)}, "
            f"status_api={bool(self.status_api)}, aggregator={bool(self.aggregator_id)})"
        )
