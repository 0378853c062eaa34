"""Load balancer convergence for one tracked entity.

Only the load balancer layer is managed here: creation, tagging, duplicate
cleanup and teardown. Listeners, rules, target groups, certificates and DNS
records are handled elsewhere.
"""

import logging
from typing import Any

from botocore.exceptions import ClientError

from ..exceptions import ConvergenceError
from ..models import DesiredState, LoadBalancerHandle, TrackedEntity
from ..naming import load_balancer_name, load_balancer_tags
from .client import DEFAULT_MAX_RETRIES, ElbClient
from .discovery import handle_from_description

logger = logging.getLogger(__name__)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class LoadBalancerConverger(ElbClient):
    """
    Converges an entity's load balancers toward its desired state.

    Each call only touches the handles of the entity it was given, so
    concurrent calls for different entities do not interfere. The entity's
    ``load_balancers`` list is updated in place to reflect what exists
    afterwards.

    Example:
        async with LoadBalancerConverger("prod", region="us-east-1") as converger:
            await converger.converge(entity)
    """

    def __init__(
        self,
        cluster_name: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        super().__init__(region=region, endpoint_url=endpoint_url, max_retries=max_retries)
        self.cluster_name = cluster_name

    async def converge(self, entity: TrackedEntity) -> None:
        """
        Converge one entity.

        Raises:
            ConvergenceError: If any ELBv2 call fails
        """
        if entity.tainted:
            logger.info(
                "Skipping tainted ingress %s: %s", entity.identity, "; ".join(entity.errors)
            )
            return

        if entity.desired_state is None:
            await self._teardown(entity)
            return

        if not entity.load_balancers:
            await self._create(entity, entity.desired_state)
            return

        if len(entity.load_balancers) > 1:
            await self._remove_duplicates(entity)

        await self._ensure_tags(entity, entity.desired_state)

    async def _teardown(self, entity: TrackedEntity) -> None:
        client = await self._get_client()
        # Handles leave the list only once deleted, so failures retry next cycle
        for handle in list(entity.load_balancers):
            await self._delete(client, entity, handle)
            entity.load_balancers.remove(handle)
        logger.info("Deleted all load balancers for %s", entity.identity)

    async def _delete(self, client: Any, entity: TrackedEntity, handle: LoadBalancerHandle) -> None:
        try:
            await client.delete_load_balancer(LoadBalancerArn=handle.arn)
        except ClientError as e:
            if _error_code(e) == "LoadBalancerNotFound":
                logger.info("Load balancer %s for %s is already gone", handle.name, entity.identity)
                return
            raise ConvergenceError(str(entity.identity), f"delete {handle.name}: {e}") from e
        logger.info("Deleted load balancer %s for %s", handle.name, entity.identity)

    async def _create(self, entity: TrackedEntity, desired: DesiredState) -> None:
        if not desired.subnets:
            raise ConvergenceError(str(entity.identity), "no subnets annotated")

        client = await self._get_client()
        name = load_balancer_name(self.cluster_name, entity.identity)
        tags = load_balancer_tags(self.cluster_name, entity.identity, dict(desired.tags))

        kwargs: dict[str, Any] = {
            "Name": name,
            "Subnets": list(desired.subnets),
            "Scheme": desired.scheme,
            "Type": "application",
            "Tags": [{"Key": k, "Value": v} for k, v in sorted(tags.items())],
        }
        if desired.security_groups:
            kwargs["SecurityGroups"] = list(desired.security_groups)

        try:
            response = await client.create_load_balancer(**kwargs)
        except ClientError as e:
            raise ConvergenceError(str(entity.identity), f"create {name}: {e}") from e

        handle = handle_from_description(response["LoadBalancers"][0])
        entity.load_balancers.append(handle)
        logger.info("Created load balancer %s for %s", handle.name, entity.identity)

    async def _remove_duplicates(self, entity: TrackedEntity) -> None:
        canonical = load_balancer_name(self.cluster_name, entity.identity)
        keep = next(
            (h for h in entity.load_balancers if h.name == canonical),
            entity.load_balancers[0],
        )
        client = await self._get_client()
        for handle in list(entity.load_balancers):
            if handle is keep:
                continue
            logger.warning(
                "Removing duplicate load balancer %s for %s", handle.name, entity.identity
            )
            await self._delete(client, entity, handle)
            entity.load_balancers.remove(handle)

    async def _ensure_tags(self, entity: TrackedEntity, desired: DesiredState) -> None:
        client = await self._get_client()
        handle = entity.load_balancers[0]
        wanted = load_balancer_tags(self.cluster_name, entity.identity, dict(desired.tags))

        try:
            response = await client.describe_tags(ResourceArns=[handle.arn])
            current: dict[str, str] = {}
            for description in response.get("TagDescriptions", []):
                current.update({t["Key"]: t["Value"] for t in description.get("Tags", [])})

            missing = {k: v for k, v in wanted.items() if current.get(k) != v}
            if missing:
                await client.add_tags(
                    ResourceArns=[handle.arn],
                    Tags=[{"Key": k, "Value": v} for k, v in sorted(missing.items())],
                )
                logger.info("Updated %d tags on %s", len(missing), handle.name)
        except ClientError as e:
            if _error_code(e) == "LoadBalancerNotFound":
                # Deleted out of band; forget it so the next cycle recreates it
                logger.warning("Load balancer %s disappeared; will recreate", handle.name)
                entity.load_balancers.remove(handle)
                return
            raise ConvergenceError(str(entity.identity), f"tag {handle.name}: {e}") from e
