"""GLOBEMARK CLI - geotagged image markers on a 3D globe.

Command-line interface for offline clustering and visibility inspection,
and for querying the image API and the geocoder.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from globemark import __version__
from globemark.config import settings
from globemark.core.visibility import summarize
from globemark.geometry import LatLon
from globemark.utils.logging import configure_logging, get_logger

app = typer.Typer(
    name="globemark",
    help="GLOBEMARK: clustered image markers on a 3D globe",
    add_completion=False,
)

PointsFile = Annotated[
    Path,
    typer.Argument(
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        help="JSON file with a list of {url, latitude, longitude} records",
    ),
]
JsonOutput = Annotated[bool, typer.Option("--json", help="Output as JSON")]
Verbose = Annotated[
    int,
    typer.Option("--verbose", "-v", count=True, help="Increase verbosity (-v, -vv)"),
]


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version(json_output: JsonOutput = False) -> None:
    """Show version information."""
    if json_output:
        typer.echo(json.dumps({"version": __version__}))
    else:
        typer.echo(f"globemark {__version__}")


@app.command()
def cluster(
    points_path: PointsFile,
    threshold_km: Annotated[
        float,
        typer.Option("--threshold-km", "-t", help="Cluster distance threshold (km)"),
    ] = settings.CLUSTER_THRESHOLD_KM,
    verbose: Verbose = 0,
    json_output: JsonOutput = False,
) -> None:
    """Cluster the points in a JSON file."""
    from globemark.cli.runners import (  # noqa: PLC0415
        cluster_to_dict,
        load_points,
        run_cluster,
    )

    _configure_logging(verbose)
    logger = get_logger(__name__)

    try:
        points = load_points(points_path)
        clusters = run_cluster(points, threshold_km)
    except Exception as e:
        logger.exception("Clustering failed")
        _fail(e, json_output)

    logger.info("Clustered points", points=len(points), clusters=len(clusters))
    if json_output:
        typer.echo(
            json.dumps(
                {
                    "threshold_km": threshold_km,
                    "point_count": len(points),
                    "clusters": [cluster_to_dict(c) for c in clusters],
                },
                indent=2,
            )
        )
        return

    typer.echo(f"{len(points)} points -> {len(clusters)} clusters")
    for c in clusters:
        typer.echo(
            f"  {c.cluster_id}: {c.member_count} member(s) at "
            f"({c.center_lat:.4f}, {c.center_lon:.4f})"
        )


@app.command()
def visibility(  # noqa: PLR0913
    points_path: PointsFile,
    camera_lat: Annotated[
        float,
        typer.Option("--camera-lat", min=-90.0, max=90.0, help="Latitude below camera"),
    ],
    camera_lon: Annotated[
        float,
        typer.Option(
            "--camera-lon", min=-180.0, max=180.0, help="Longitude below camera"
        ),
    ],
    altitude: Annotated[
        float, typer.Option("--altitude", min=0.0, help="Camera altitude (m)")
    ],
    threshold_km: Annotated[
        float,
        typer.Option("--threshold-km", "-t", help="Cluster distance threshold (km)"),
    ] = settings.CLUSTER_THRESHOLD_KM,
    altitude_threshold: Annotated[
        float,
        typer.Option(
            "--altitude-threshold", help="Altitude above which clusters aggregate (m)"
        ),
    ] = settings.ALTITUDE_THRESHOLD_M,
    verbose: Verbose = 0,
    json_output: JsonOutput = False,
) -> None:
    """Evaluate marker visibility for a camera above a point."""
    from globemark.cli.runners import load_points, run_visibility  # noqa: PLC0415

    _configure_logging(verbose)
    logger = get_logger(__name__)

    try:
        points = load_points(points_path)
        _, frame = run_visibility(
            points,
            threshold_km=threshold_km,
            camera_target=LatLon(latitude=camera_lat, longitude=camera_lon),
            altitude=altitude,
            altitude_threshold=altitude_threshold,
        )
    except Exception as e:
        logger.exception("Visibility evaluation failed")
        _fail(e, json_output)

    summary = summarize(frame)
    if json_output:
        typer.echo(json.dumps(summary, indent=2))
        return

    mode = "aggregates" if frame.zoomed_out else "members"
    typer.echo(f"Showing {mode}; {frame.visible_count} marker(s) visible")
    for cluster_id, decision in frame.items():
        if frame.zoomed_out:
            state = "visible" if decision.aggregate_visible else "hidden"
        else:
            state = f"{decision.visible_count}/{len(decision.member_visible)} visible"
        typer.echo(f"  {cluster_id}: {state}")


@app.command()
def fetch(
    threshold_km: Annotated[
        float,
        typer.Option("--threshold-km", "-t", help="Cluster distance threshold (km)"),
    ] = settings.CLUSTER_THRESHOLD_KM,
    verbose: Verbose = 0,
    json_output: JsonOutput = False,
) -> None:
    """List images from the image API and cluster them."""
    from globemark.cli.runners import (  # noqa: PLC0415
        cluster_to_dict,
        fetch_images,
        run_cluster,
    )
    from globemark.services import located_points  # noqa: PLC0415

    _configure_logging(verbose)
    logger = get_logger(__name__)

    try:
        records = asyncio.run(fetch_images(settings))
        located = located_points(records)
        clusters = run_cluster(located.points, threshold_km)
    except Exception as e:
        logger.exception("Fetch failed")
        _fail(e, json_output)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "image_count": len(records),
                    "located_count": len(located.points),
                    "skipped_count": located.skipped,
                    "rejected_count": located.rejected,
                    "clusters": [cluster_to_dict(c) for c in clusters],
                },
                indent=2,
            )
        )
        return

    if not records:
        typer.echo("No images found")
        return
    typer.echo(
        f"{len(records)} images ({len(located.points)} located, "
        f"{located.rejected} rejected) -> {len(clusters)} clusters"
    )
    for c in clusters:
        typer.echo(
            f"  {c.cluster_id}: {c.member_count} member(s) at "
            f"({c.center_lat:.4f}, {c.center_lon:.4f})"
        )


@app.command()
def geocode(
    address: Annotated[str, typer.Argument(help="Free-form address to look up")],
    verbose: Verbose = 0,
    json_output: JsonOutput = False,
) -> None:
    """Resolve an address to a latitude/longitude."""
    from globemark.cli.runners import geocode_address  # noqa: PLC0415

    _configure_logging(verbose)
    logger = get_logger(__name__)

    try:
        result = asyncio.run(geocode_address(address, settings))
    except Exception as e:
        logger.exception("Geocoding failed")
        _fail(e, json_output)

    if json_output:
        typer.echo(json.dumps(result.model_dump()))
    else:
        typer.echo(f"{result.display_name}")
        typer.echo(f"  ({result.latitude:.6f}, {result.longitude:.6f})")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """GLOBEMARK: clustered image markers on a 3D globe."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def _configure_logging(verbose: int) -> None:
    """Configure logging based on verbosity level."""
    if verbose == 0:
        level = "WARNING"
    elif verbose == 1:
        level = "INFO"
    else:  # verbose >= 2
        level = "DEBUG"

    configure_logging(level=level)


def _fail(error: Exception, json_output: bool) -> NoReturn:
    """Report an error and exit with status 1."""
    if json_output:
        typer.echo(json.dumps({"error": str(error)}))
    else:
        typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1) from None


if __name__ == "__main__":  # pragma: no cover
    app()
