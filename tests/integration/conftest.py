"""Integration test fixtures for LocalStack."""

import uuid

import aioboto3
import pytest
import pytest_asyncio


@pytest.fixture
def unique_cluster():
    """Generate a unique cluster name for test isolation.

    Cluster names start with a letter and are at most 11 characters.
    """
    return f"it{uuid.uuid4().hex[:8]}"


@pytest_asyncio.fixture
async def localstack_subnets(localstack_endpoint):
    """Two subnets in a fresh VPC, enough for an application load balancer."""
    session = aioboto3.Session()
    async with session.client(
        "ec2", region_name="us-east-1", endpoint_url=localstack_endpoint
    ) as ec2:
        vpc = (await ec2.create_vpc(CidrBlock="10.0.0.0/16"))["Vpc"]["VpcId"]
        subnets = []
        for i, zone in enumerate(("us-east-1a", "us-east-1b")):
            response = await ec2.create_subnet(
                VpcId=vpc, CidrBlock=f"10.0.{i}.0/24", AvailabilityZone=zone
            )
            subnets.append(response["Subnet"]["SubnetId"])
        yield tuple(subnets)
