"""
Host state management and telemetry generation.
"""

import random

from src.analyzer.models import MetricKind, MetricSample, now_ms

from .models import AttackType

GIB = 1024 * 1024 * 1024

PORT_SCAN_PORTS = 30  # distinct destination ports probed per scan round
FLOOD_CONNECTIONS = 60  # packets from the flooding source per round
SERVICE_PORTS = (22, 53, 80, 443, 5432, 6379, 8080, 9092)


class HostState:
    """Tracks the state of a host over time for realistic evolution"""

    def __init__(self, address: str, peers: list[str], attacker_prefix: str = "203.0.113"):
        self.address = address
        self.peers = [p for p in peers if p != address] or [address]
        self.attacker_prefix = attacker_prefix

        # Base values (these evolve slowly)
        self.base_cpu = random.uniform(20, 40)
        self.memory_total = random.choice((8, 16, 32, 64)) * GIB
        self.base_memory = random.uniform(30, 50)
        self.disk_total = random.choice((256, 512, 1024)) * GIB
        self.base_disk = random.uniform(40, 70)
        self.base_rx = random.uniform(100_000, 400_000)  # bytes per interval
        self.base_tx = random.uniform(50_000, 200_000)

        # Long-lived flows keep the port-pair count of normal traffic small
        self.flows = [
            (random.choice(self.peers), random.randint(32768, 60999), random.choice(SERVICE_PORTS))
            for _ in range(3)
        ]

        # Current attack state
        self.active_attack: AttackType | None = None
        self.attack_duration: int = 0
        self.attacker: str | None = None

    def generate_round(
        self,
        inject_attack: AttackType | None = None,
        network_samples: int = 4,
        timestamp: int | None = None,
    ) -> list[MetricSample]:
        """Generate one SYSTEM sample followed by a burst of NETWORK samples

        Args:
            inject_attack: Optional attack type to start on this host
            network_samples: Normal packet samples per round
            timestamp: Optional epoch milliseconds, defaults to now
        """
        if inject_attack:
            self.active_attack = inject_attack
            self.attack_duration = random.randint(2, 6)  # rounds
            self.attacker = f"{self.attacker_prefix}.{random.randint(1, 254)}"

        ts = timestamp if timestamp is not None else now_ms()
        attack = self.active_attack

        samples = [self._system_sample(ts, attack)]
        samples += [self._network_sample(ts, attack) for _ in range(network_samples)]

        if attack == AttackType.PORT_SCAN:
            samples += self._port_scan(ts)
        elif attack == AttackType.CONNECTION_FLOOD:
            samples += self._flood(ts)

        if attack:
            self.attack_duration -= 1
            if self.attack_duration <= 0:
                self.active_attack = None
                self.attacker = None

        return samples

    def _system_sample(self, ts: int, attack: AttackType | None) -> MetricSample:
        cpu_mult = mem_mult = traffic_mult = 1.0
        disk_percent = self.base_disk + random.uniform(-1, 1)

        if attack == AttackType.CPU_SPIKE:
            cpu_mult = random.uniform(2.5, 4.0)
        elif attack == AttackType.MEMORY_LEAK:
            mem_mult = random.uniform(1.8, 2.4)
        elif attack == AttackType.DISK_FILL:
            disk_percent = random.uniform(92, 99)
        elif attack == AttackType.TRAFFIC_SPIKE:
            traffic_mult = random.uniform(15, 30)

        cpu_usage = min(99.9, max(0.1, (self.base_cpu + random.uniform(-5, 5)) * cpu_mult))
        memory_percent = min(99.5, max(5.0, (self.base_memory + random.uniform(-2, 2)) * mem_mult))

        return MetricSample(
            host=self.address,
            timestamp=ts,
            metric_type=MetricKind.SYSTEM,
            cpu_usage=round(cpu_usage, 2),
            memory_total=self.memory_total,
            memory_used=int(self.memory_total * memory_percent / 100),
            disk_total=self.disk_total,
            disk_used=int(self.disk_total * min(99.9, disk_percent) / 100),
            network_rx=int(self.base_rx * traffic_mult * random.uniform(0.9, 1.1)),
            network_tx=int(self.base_tx * traffic_mult * random.uniform(0.9, 1.1)),
            extended_metrics={"cpu_cores": 8, "simulated": True},
        )

    def _network_sample(self, ts: int, attack: AttackType | None) -> MetricSample:
        peer, source_port, dest_port = random.choice(self.flows)
        packets = random.randint(10, 60)
        errors = 0
        if attack == AttackType.ERROR_BURST:
            errors = max(1, int(packets * random.uniform(0.05, 0.2)))

        return MetricSample(
            host=self.address,
            timestamp=ts,
            metric_type=MetricKind.NETWORK,
            bytes=packets * random.randint(200, 1400),
            packets=packets,
            errors=errors,
            protocol="UDP" if dest_port == 53 else "TCP",
            source_ip=self.address,
            dest_ip=peer,
            source_port=source_port,
            dest_port=dest_port,
        )

    def _inbound(self, ts: int, source_port: int, dest_port: int) -> MetricSample:
        return MetricSample(
            host=self.address,
            timestamp=ts,
            metric_type=MetricKind.NETWORK,
            bytes=60,
            packets=1,
            protocol="TCP",
            source_ip=self.attacker,
            dest_ip=self.address,
            source_port=source_port,
            dest_port=dest_port,
        )

    def _port_scan(self, ts: int) -> list[MetricSample]:
        source_port = random.randint(40000, 60000)
        ports = random.sample(range(1, 1024), PORT_SCAN_PORTS)
        return [self._inbound(ts, source_port, port) for port in ports]

    def _flood(self, ts: int) -> list[MetricSample]:
        dest_port = random.choice(SERVICE_PORTS)
        return [
            self._inbound(ts, random.randint(1024, 65535), dest_port)
            for _ in range(FLOOD_CONNECTIONS)
        ]
