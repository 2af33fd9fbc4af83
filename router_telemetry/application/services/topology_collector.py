"""
Topology collection: one composite diagnostic script, parsed into a snapshot.
"""

import logging
from typing import Dict, List, Optional

from router_telemetry.domain.entities.topology import TopologySnapshot
from router_telemetry.domain.errors import CommandError, NotConnectedError
from router_telemetry.infrastructure.parsers.base import split_sections
from router_telemetry.infrastructure.parsers.topology_parser import TopologyParser
from router_telemetry.infrastructure.scripts import router_scripts

logger = logging.getLogger(__name__)


class TopologyCollector:
    """Runs the topology script on the router and parses its sections."""

    def __init__(self,
                 channel,
                 lan_interface: str = "br0",
                 node_user: str = "admin",
                 parser: Optional[TopologyParser] = None):
        """
        Args:
            channel: Remote command channel (``RouterSSHClient`` or compatible)
            lan_interface: LAN bridge whose neighbor table lists wired clients
            node_user: Account used to reach mesh nodes through dbclient
        """
        self.channel = channel
        self.lan_interface = lan_interface
        self.node_user = node_user
        self.parser = parser or TopologyParser()

    async def collect(self) -> TopologySnapshot:
        """
        Collect the current topology.

        Returns:
            TopologySnapshot; sections that could not be read are listed in
            ``failed_sections``

        Raises:
            NotConnectedError: channel inactive
            SSHConnectionError: transport lost during collection
        """
        if not self.channel.is_active():
            raise NotConnectedError()

        script = router_scripts.topology_script(self.lan_interface, self.node_user)
        try:
            output = await self.channel.execute(script)
        except CommandError as e:
            logger.warning(f"Topology script failed ({str(e)}), collecting sections one by one")
            return await self._collect_by_section()

        snapshot = self.parser.parse(output)
        self._log_snapshot(snapshot)
        return snapshot

    async def _collect_by_section(self) -> TopologySnapshot:
        sections: Dict[str, List[str]] = {}
        for name, command in router_scripts.topology_sections(self.lan_interface, self.node_user).items():
            try:
                output = await self.channel.execute(router_scripts.wrap_section(name, command))
            except CommandError as e:
                logger.error(f"❌ Topology section {name} failed: {str(e)}")
                continue
            sections[name] = split_sections(output).get(name, [])

        snapshot = self.parser.parse_sections(sections)
        self._log_snapshot(snapshot)
        return snapshot

    def _log_snapshot(self, snapshot: TopologySnapshot) -> None:
        logger.info(
            f"Topology collected: {len(snapshot.dhcp_clients)} leases, "
            f"{len(snapshot.wireless_clients)} wireless, {len(snapshot.wired_clients)} wired, "
            f"{len(snapshot.aimesh_nodes)} mesh members"
        )
        if snapshot.failed_sections:
            logger.warning(f"Topology sections missing: {', '.join(snapshot.failed_sections)}")
        if snapshot.unreachable_nodes:
            logger.warning(f"Mesh nodes unreachable: {', '.join(snapshot.unreachable_nodes)}")
