"""
Strategy Registry and Selector

The registry is a read-only id -> Strategy map built once per process and
shared by every in-flight request. The selector resolves a strategy with a
fixed order, first match wins:

1. an explicit, registered strategy id on the request
2. the category -> strategy table
3. the default strategy

Selection depends only on the request's strategy id and the classification
category, so identical inputs always select the same strategy.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

from src.core.errors import UnknownStrategyError
from src.core.strategies import Strategy, build_strategies
from src.models.generation import ClassificationResult, ContentCategory, GenerationRequest
from src.models.pipeline_record import SelectionSource
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

AUTO_STRATEGY = "auto"
DEFAULT_STRATEGY_ID = "simple"

CATEGORY_STRATEGY_MAP: Mapping[ContentCategory, str] = MappingProxyType({
    ContentCategory.NARRATIVE: "education",
    ContentCategory.BUSINESS: "simple",
    ContentCategory.ACADEMIC: "research-presentation-oriented",
    ContentCategory.TECHNICAL: "simple",
    ContentCategory.CREATIVE: "marketing-oriented",
})


class StrategyRegistry:
    """Fixed catalog of strategies keyed by id."""

    def __init__(self, strategies: Iterable[Strategy]):
        catalog: Dict[str, Strategy] = {}
        for strategy in strategies:
            if strategy.id in catalog:
                raise ValueError(f"Duplicate strategy id: {strategy.id}")
            catalog[strategy.id] = strategy
        self._strategies: Mapping[str, Strategy] = MappingProxyType(catalog)

    @classmethod
    def default(cls) -> "StrategyRegistry":
        return cls(build_strategies())

    def get(self, strategy_id: str) -> Strategy:
        """
        Raises:
            UnknownStrategyError: If the id is not registered
        """
        try:
            return self._strategies[strategy_id]
        except KeyError:
            raise UnknownStrategyError(strategy_id) from None

    def __contains__(self, strategy_id: object) -> bool:
        return strategy_id in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    @property
    def ids(self) -> List[str]:
        return list(self._strategies)

    def describe(self) -> List[dict]:
        """Catalog summary for the /strategies endpoint."""
        return [
            {
                "id": strategy.id,
                "name": strategy.display_name,
                "layout": {
                    "preferredLayouts": list(strategy.layout.preferred_layouts),
                    "imagePositioning": strategy.layout.image_positioning,
                    "textDensity": strategy.layout.text_density,
                },
            }
            for strategy in self._strategies.values()
        ]


class StrategySelection(NamedTuple):
    strategy: Strategy
    source: SelectionSource


class StrategySelector:
    """Deterministic, side-effect-free strategy resolution."""

    def __init__(
        self,
        registry: StrategyRegistry,
        category_map: Optional[Mapping[ContentCategory, str]] = None,
        default_strategy_id: str = DEFAULT_STRATEGY_ID
    ):
        self.registry = registry
        self.category_map = MappingProxyType(dict(CATEGORY_STRATEGY_MAP if category_map is None else category_map))
        # Fail at start-up rather than on the first request
        self.default_strategy = registry.get(default_strategy_id)
        for strategy_id in self.category_map.values():
            registry.get(strategy_id)

    def select(
        self,
        request: GenerationRequest,
        classification: Optional[ClassificationResult]
    ) -> StrategySelection:
        requested = request.strategy_id
        if requested and requested != AUTO_STRATEGY:
            if requested in self.registry:
                return StrategySelection(self.registry.get(requested), SelectionSource.EXPLICIT)
            logger.warning(f"Ignoring unknown strategy id {requested!r}; falling back to classification")

        if classification is not None:
            mapped = self.category_map.get(classification.category)
            if mapped:
                return StrategySelection(self.registry.get(mapped), SelectionSource.CATEGORY_MAP)

        return StrategySelection(self.default_strategy, SelectionSource.DEFAULT)
