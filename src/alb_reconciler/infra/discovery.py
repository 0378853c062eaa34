"""Load balancer inventory for a cluster's fleet.

Read-only: lists ELBv2 load balancers whose names carry the cluster prefix
and reads their tags. Lifecycle changes live in the converger.
"""

from typing import Any

from botocore.exceptions import ClientError

from ..exceptions import InventoryError
from ..models import LoadBalancerHandle
from ..naming import name_prefix
from .client import ElbClient

# describe_load_balancers page size (API maximum is 400)
PAGE_SIZE = 400


def handle_from_description(description: dict[str, Any]) -> LoadBalancerHandle:
    return LoadBalancerHandle(
        arn=description["LoadBalancerArn"],
        name=description["LoadBalancerName"],
        dns_name=description.get("DNSName"),
    )


class LoadBalancerInventory(ElbClient):
    """
    Discovers the load balancers that make up a cluster's fleet.

    Example:
        async with LoadBalancerInventory(region="us-east-1") as inventory:
            for handle in await inventory.list_load_balancers("prod"):
                tags = await inventory.get_tags(handle)
    """

    async def list_load_balancers(self, cluster_name: str) -> list[LoadBalancerHandle]:
        """
        List all load balancers named with the cluster prefix.

        Returns:
            Handles sorted by name.

        Raises:
            InventoryError: If the ELBv2 API call fails
        """
        client = await self._get_client()
        prefix = name_prefix(cluster_name)

        handles: list[LoadBalancerHandle] = []
        marker: str | None = None

        while True:
            kwargs: dict[str, Any] = {"PageSize": PAGE_SIZE}
            if marker:
                kwargs["Marker"] = marker

            try:
                response = await client.describe_load_balancers(**kwargs)
            except ClientError as e:
                raise InventoryError(cluster_name, str(e)) from e

            for description in response.get("LoadBalancers", []):
                if description["LoadBalancerName"].startswith(prefix):
                    handles.append(handle_from_description(description))

            marker = response.get("NextMarker")
            if not marker:
                break

        handles.sort(key=lambda h: h.name)
        return handles

    async def get_tags(self, handle: LoadBalancerHandle) -> dict[str, str]:
        """
        Read the tags of one load balancer.

        Raises:
            InventoryError: If the ELBv2 API call fails
        """
        client = await self._get_client()
        try:
            response = await client.describe_tags(ResourceArns=[handle.arn])
        except ClientError as e:
            raise InventoryError(handle.name, str(e)) from e

        for description in response.get("TagDescriptions", []):
            if description.get("ResourceArn") == handle.arn:
                return {tag["Key"]: tag["Value"] for tag in description.get("Tags", [])}
        return {}
