import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.boundary import ReconstructionOptions
from ..core.grid import GridConfig, RegionConfig
from ..core.models import COORD_MATCH_TOLERANCE_DEG
from ..core.scoring import ScoringOptions

# Explicitly load .env for local/dev environments only if values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Region Configuration (defaults: Portland, OR)
    region_south: float = Field(default=45.43, ge=-90, le=90, description="Southern bound")
    region_west: float = Field(default=-122.84, ge=-180, le=180, description="Western bound")
    region_north: float = Field(default=45.65, ge=-90, le=90, description="Northern bound")
    region_east: float = Field(default=-122.47, ge=-180, le=180, description="Eastern bound")

    # Grid Configuration
    cell_size_km: float = Field(default=0.804, gt=0, description="Nominal cell edge (half a mile)")
    cell_lat_step: float = Field(default=0.00724, gt=0, description="Cell height in degrees")
    cell_lon_step: float = Field(default=0.0103, gt=0, description="Cell width in degrees")
    fallback_grid_size: int = Field(default=4, ge=1, description="Fallback areas per side")

    # Scoring Configuration
    decay_length_km: float = Field(default=0.5, gt=0, description="Proximity decay length")
    edge_inclusive: bool = Field(default=True, description="Count edge records in every touching cell")
    scoring_workers: int = Field(default=1, ge=1, description="Threads used to score cells")
    top_n: int = Field(default=50, ge=1, description="Cells listed as top areas")

    # Boundary Configuration
    coord_match_tolerance_deg: float = Field(
        default=COORD_MATCH_TOLERANCE_DEG, gt=0, description="Endpoint matching tolerance"
    )
    min_area_km2: float = Field(default=0.01, gt=0, description="Floor for computed areas")
    min_named_area_km2: float = Field(default=0.001, ge=0, description="Smallest usable neighborhood")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    @model_validator(mode="after")
    def check_region(self) -> "Settings":
        if self.region_north <= self.region_south:
            raise ValueError("region_north must be greater than region_south")
        if self.region_east <= self.region_west:
            raise ValueError("region_east must be greater than region_west")
        return self

    def region(self) -> RegionConfig:
        return RegionConfig(
            south=self.region_south,
            west=self.region_west,
            north=self.region_north,
            east=self.region_east,
        )

    def grid_config(self) -> GridConfig:
        return GridConfig(
            region=self.region(),
            cell_size_km=self.cell_size_km,
            lat_step=self.cell_lat_step,
            lon_step=self.cell_lon_step,
        )

    def scoring_options(self) -> ScoringOptions:
        return ScoringOptions(
            decay_length_km=self.decay_length_km,
            edge_inclusive=self.edge_inclusive,
            workers=self.scoring_workers,
        )

    def reconstruction_options(self) -> ReconstructionOptions:
        return ReconstructionOptions(
            coord_match_tolerance_deg=self.coord_match_tolerance_deg,
            reference_lat=self.region_north,
            min_area_km2=self.min_area_km2,
            min_named_area_km2=self.min_named_area_km2,
        )


# Instantiate singleton settings object
settings = Settings()
