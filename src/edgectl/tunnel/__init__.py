"""Supervisor for the provider's outbound tunnel daemon."""

from edgectl.tunnel.supervisor import TunnelSupervisor, find_binary, install_hint

__all__ = ["TunnelSupervisor", "find_binary", "install_hint"]
