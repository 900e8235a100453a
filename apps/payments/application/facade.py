from __future__ import annotations

import threading

from apps.payments.application.services.qpay_config import QPayConfigService
from apps.payments.domain.ports import QPayGatewayPort
from apps.payments.infrastructure.gateways.qpay_gateway import QPayGateway
from apps.payments.infrastructure.gateways.sandbox_gateway import SandboxQPayGateway


class QPayGatewayFacade:
    _instance: QPayGatewayPort | None = None
    _lock = threading.Lock()

    @classmethod
    def get(cls) -> QPayGatewayPort:
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls._build()
            return cls._instance

    @classmethod
    def override(cls, gateway: QPayGatewayPort) -> None:
        with cls._lock:
            cls._instance = gateway

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    @staticmethod
    def _build() -> QPayGatewayPort:
        config = QPayConfigService.load()
        if config.gateway == SandboxQPayGateway.code:
            return SandboxQPayGateway()
        if config.gateway == QPayGateway.code:
            QPayConfigService.validate_live(config)
            return QPayGateway(config=config)
        raise ValueError(f"Unknown payment gateway: {config.gateway}")
