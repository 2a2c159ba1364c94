"""DialogRuntime: explicit owner of the dialog subsystem.

Responsibilities:
 - Build the ConversationStore and Orchestrator from the ``dialog`` config
 - Map backend names (default + fallback chain) to BackendDescriptor
   factories and register the resulting backends
 - Unknown fallback names → warn & skip; an unknown default is a ConfigError
 - Close everything it created, exactly once

There is no module level instance; whoever creates a runtime closes it.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from dialogcore.config import (
    ConfigError,
    DialogConfig,
    get_config,
    validate_dialog_config,
)
from dialogcore.dialog.llm_backend import GeneratorFactory, LLMBackend
from dialogcore.dialog.orchestrator import Orchestrator
from dialogcore.dialog.rule_backend import RuleBackend
from dialogcore.dialog.store import ConversationStore
from dialogcore.dialog.types import (
    DialogBackend,
    DialogContext,
    GeneratedResponse,
    UserFeedback,
)
from dialogcore.llm import KeywordGenerator

_log = logging.getLogger("dialog.runtime")


@dataclass(frozen=True)
class BackendDescriptor:
    name: str
    init: Callable[["DialogRuntime"], DialogBackend]


def _init_llm_backend(rt: "DialogRuntime") -> DialogBackend:
    backend = LLMBackend(rt.cfg, rt.store, rt.generator_factory)
    backend.initialize()
    return backend


def _init_rule_backend(rt: "DialogRuntime") -> DialogBackend:
    return RuleBackend()


BASE_REGISTRY: Dict[str, BackendDescriptor] = {
    "llm": BackendDescriptor("llm", init=_init_llm_backend),
    "rules": BackendDescriptor("rules", init=_init_rule_backend),
}


class DialogRuntime:
    def __init__(
        self,
        cfg: DialogConfig | None = None,
        *,
        generator_factory: Optional[GeneratorFactory] = None,
        extra_registry: Optional[Dict[str, BackendDescriptor]] = None,
        **store_kwargs,
    ) -> None:
        self.cfg = cfg if cfg is not None else get_config().dialog
        validate_dialog_config(self.cfg)
        self.generator_factory: GeneratorFactory = (
            generator_factory or KeywordGenerator
        )
        registry = dict(BASE_REGISTRY)
        if extra_registry:
            registry.update(extra_registry)
        self._unknown: List[str] = []
        self._closed = False
        self._close_lock = threading.Lock()

        self.store = ConversationStore.from_config(self.cfg, **store_kwargs)
        self.orchestrator = Orchestrator.from_config(self.cfg, store=self.store)
        try:
            self._wire(registry)
        except Exception:
            self.close()
            raise

    @classmethod
    def from_config(cls, **kwargs) -> "DialogRuntime":
        return cls(get_config().dialog, **kwargs)

    def _wire(self, registry: Dict[str, BackendDescriptor]) -> None:
        if not self.cfg.enabled:
            _log.info("dialog disabled; static fallback only")
            return
        wanted: List[str] = []
        for name in [self.cfg.default_backend, *self.cfg.fallback_chain]:
            if name and name not in wanted:
                wanted.append(name)
        for name in wanted:
            desc = registry.get(name)
            if desc is None:
                if name == self.cfg.default_backend:
                    raise ConfigError(f"unknown default backend '{name}'")
                _log.warning("unknown fallback backend '%s' skipped", name)
                self._unknown.append(name)
                continue
            self.orchestrator.register_backend(name, desc.init(self))
        self.orchestrator.set_default(self.cfg.default_backend)
        self.orchestrator.set_fallback_chain(
            n for n in self.cfg.fallback_chain if n not in self._unknown
        )

    @property
    def unknown(self) -> List[str]:  # backends named in config but not known
        return list(self._unknown)

    @property
    def closed(self) -> bool:
        return self._closed

    def generate(self, ctx: DialogContext) -> GeneratedResponse:
        return self.orchestrator.generate(ctx)

    def update_memory(
        self,
        ctx: DialogContext,
        response: GeneratedResponse,
        feedback: UserFeedback,
    ) -> Optional[str]:
        return self.orchestrator.update_memory(ctx, response, feedback)

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self.orchestrator.close()
        self.store.close()
        _log.info("dialog runtime closed")

    def __enter__(self) -> "DialogRuntime":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


__all__ = ["DialogRuntime", "BackendDescriptor", "BASE_REGISTRY"]
