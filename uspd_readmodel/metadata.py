"""Stabilizer NFT metadata rendering. Pure, no I/O."""
from __future__ import annotations

import base64

from .models import ProviderPosition, StabilizerMetadata

DESCRIPTION = "Represents a position in the USPD Stabilizer system."


def placeholder_svg(token_id: int) -> str:
    """Return a minimal SVG badge as a base64 data URI."""
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="400">'
        '<rect width="100%" height="100%" fill="black"/>'
        '<text x="50%" y="50%" fill="white" font-size="20" text-anchor="middle" '
        f'dominant-baseline="middle">Stabilizer #{token_id}</text></svg>'
    )
    encoded = base64.b64encode(svg.encode()).decode()
    return f"data:image/svg+xml;base64,{encoded}"


def format_bps_percent(bps: int) -> str:
    """15000 -> '150.00%' without going through floats."""
    return f"{bps // 100}.{bps % 100:02d}%"


def build_stabilizer_metadata(
    token_id: int, position: ProviderPosition | None
) -> StabilizerMetadata:
    attributes: list[dict[str, str]] = [
        {"trait_type": "Token ID", "value": str(token_id)},
    ]
    # An unminted token reads back as an all-zero position.
    if position is not None and position.min_collateral_ratio_bps > 0:
        attributes.append(
            {
                "trait_type": "Min Collateral Ratio",
                "value": format_bps_percent(position.min_collateral_ratio_bps),
            }
        )
    return StabilizerMetadata(
        token_id=token_id,
        name=f"USPD Stabilizer #{token_id}",
        description=DESCRIPTION,
        image=placeholder_svg(token_id),
        attributes=tuple(attributes),
    )
