"""AWS access for the load balancer fleet."""

from .converger import LoadBalancerConverger
from .discovery import LoadBalancerInventory

__all__ = ["LoadBalancerConverger", "LoadBalancerInventory"]
