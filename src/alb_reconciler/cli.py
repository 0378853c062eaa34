"""Command-line interface for the ALB ingress controller."""

import asyncio
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from .bootstrap import resync
from .config import LOG_FORMATS, LOG_LEVELS, ControllerSettings
from .controller import IngressController
from .differ import compute_next_set
from .exceptions import ALBReconcilerError, ValidationError
from .infra.client import DEFAULT_MAX_RETRIES
from .infra.converger import LoadBalancerConverger
from .infra.discovery import LoadBalancerInventory
from .log import configure_logging
from .manifest import ManifestSource


def aws_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to AWS."""
    func = click.option(
        "--max-retries",
        envvar="AWS_MAX_RETRIES",
        type=click.IntRange(0, 100),
        default=DEFAULT_MAX_RETRIES,
        show_default=True,
        help="Retry attempts per AWS API call",
    )(func)
    func = click.option(
        "--endpoint-url",
        envvar="AWS_ENDPOINT_URL",
        help="AWS endpoint URL (e.g., http://localhost:4566 for LocalStack)",
    )(func)
    func = click.option(
        "--region",
        envvar="AWS_REGION",
        help="AWS region (default: use boto3 defaults)",
    )(func)
    func = click.option(
        "--cluster-name",
        envvar="CLUSTER_NAME",
        required=True,
        help="The name of the cluster, used for naming AWS resources (max 11 characters)",
    )(func)
    return func


def manifest_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--manifests",
        envvar="MANIFEST_PATH",
        required=True,
        type=click.Path(exists=True, path_type=Path),
        help="Ingress/Service YAML file or directory",
    )(func)


def _settings(**kwargs: Any) -> ControllerSettings:
    try:
        return ControllerSettings(**kwargs)
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.version_option(package_name="alb-reconciler")
def cli() -> None:
    """ALB ingress controller: converge load balancers to ingress specs."""
    pass


@cli.command()
@aws_options
@manifest_option
@click.option(
    "--ingress-class",
    envvar="INGRESS_CLASS",
    default="",
    help="Only manage ingresses with this kubernetes.io/ingress.class (default: all)",
)
@click.option(
    "--sync-interval",
    envvar="SYNC_INTERVAL",
    type=click.FloatRange(min=0, min_open=True),
    default=30.0,
    show_default=True,
    help="Seconds between reconciliation cycles",
)
@click.option(
    "--max-concurrency",
    envvar="MAX_CONCURRENCY",
    type=click.IntRange(min=0),
    default=10,
    show_default=True,
    help="Concurrent discovery/convergence tasks (0 = unbounded)",
)
@click.option(
    "--converge-timeout",
    envvar="CONVERGE_TIMEOUT",
    type=click.FloatRange(min=0, min_open=True),
    default=300.0,
    show_default=True,
    help="Per-ingress convergence time limit in seconds",
)
@click.option(
    "--dispatch-deadline",
    envvar="DISPATCH_DEADLINE",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Time limit in seconds for converging all ingresses in one cycle",
)
@click.option("--port", envvar="PORT", type=click.IntRange(1, 65535), default=8080)
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
)
@click.option("--log-format", envvar="LOG_FORMAT", type=click.Choice(LOG_FORMATS), default="text")
@click.option("--aws-debug/--no-aws-debug", envvar="AWS_DEBUG", default=False)
def run(manifests: Path, **kwargs: Any) -> None:
    """Run the controller and its /state, /metrics and /healthz endpoints."""
    settings = _settings(**kwargs)
    configure_logging(settings.log_level, settings.log_format, settings.aws_debug)
    try:
        asyncio.run(_serve(settings, manifests))
    except ALBReconcilerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


async def _serve(settings: ControllerSettings, manifests: Path) -> None:
    import uvicorn

    from .server import create_app

    source = ManifestSource(manifests)
    stop = asyncio.Event()

    async with (
        LoadBalancerInventory(settings.region, settings.endpoint_url, settings.max_retries) as inv,
        LoadBalancerConverger(
            settings.cluster_name, settings.region, settings.endpoint_url, settings.max_retries
        ) as converger,
    ):
        controller = IngressController(settings, source, source, inv, converger)
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(controller.store),
                host="0.0.0.0",
                port=settings.port,
                log_level=settings.log_level.lower(),
            )
        )
        server_task = asyncio.create_task(server.serve())
        # uvicorn handles SIGINT/SIGTERM; its exit stops the controller
        server_task.add_done_callback(lambda _: stop.set())
        try:
            await controller.run(stop)
        finally:
            server.should_exit = True
            await server_task


@cli.command()
@aws_options
@manifest_option
@click.option("--ingress-class", envvar="INGRESS_CLASS", default="", help="Ingress class filter")
def plan(
    cluster_name: str,
    region: str | None,
    endpoint_url: str | None,
    max_retries: int,
    manifests: Path,
    ingress_class: str,
) -> None:
    """Show the tracked-entity set the next cycle would converge (no changes made)."""
    settings = _settings(
        cluster_name=cluster_name,
        region=region,
        endpoint_url=endpoint_url,
        max_retries=max_retries,
        ingress_class=ingress_class,
    )

    async def _plan() -> dict[str, Any]:
        source = ManifestSource(manifests)
        specs = await source.list_ingresses()
        async with LoadBalancerInventory(region, endpoint_url, max_retries) as inventory:
            bootstrapped = await resync(inventory, settings.cluster_name, settings.max_concurrency)
        result = compute_next_set(bootstrapped.entities, specs, settings.ingress_class, source)
        return {
            "summary": result.summary(),
            "ingresses": [entity.to_dict() for entity in result.entities],
            "orphans": [orphan.to_dict() for orphan in bootstrapped.orphans],
        }

    try:
        output = asyncio.run(_plan())
    except ALBReconcilerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(json.dumps(output, indent=2))


@cli.command()
@aws_options
def discover(
    cluster_name: str,
    region: str | None,
    endpoint_url: str | None,
    max_retries: int,
) -> None:
    """List the cluster's load balancers and the ingresses that own them."""
    settings = _settings(cluster_name=cluster_name, region=region, endpoint_url=endpoint_url)

    async def _discover() -> Any:
        async with LoadBalancerInventory(region, endpoint_url, max_retries) as inventory:
            return await resync(inventory, settings.cluster_name, settings.max_concurrency)

    try:
        result = asyncio.run(_discover())
    except ALBReconcilerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not result.entities and not result.orphans:
        click.echo(f"No load balancers found for cluster {cluster_name}")
        return

    click.echo(f"{'INGRESS':<40} {'LOAD BALANCER':<34} DNS NAME")
    for entity in result.entities:
        for handle in entity.load_balancers:
            flag = " (duplicate)" if len(entity.load_balancers) > 1 else ""
            click.echo(
                f"{str(entity.identity):<40} {handle.name:<34} {handle.dns_name or '-'}{flag}"
            )
    for orphan in result.orphans:
        click.echo(f"{'<unknown owner>':<40} {orphan.handle.name:<34} {orphan.reason}")


if __name__ == "__main__":
    cli()
