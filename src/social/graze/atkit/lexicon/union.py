"""
Open-world ``$type`` unions.

Lexicon unions are open: servers may send variants this SDK has never heard of. A union is
decoded into one of a closed set of known ``LexiconModel`` subclasses, or into an
``UnknownVariant`` that keeps the complete original mapping so it can be written back without
loss.

Model fields declare unions with ``open_union``:

    class SavedFeedsPrefV2(LexiconModel):
        ...

    class GetPreferencesOutput(LexiconModel):
        preferences: List[open_union(AdultContentPref, SavedFeedsPrefV2, ...)]
"""

from dataclasses import dataclass, field
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Type,
    Union,
)

from pydantic import BaseModel, ConfigDict, PlainSerializer, PlainValidator
from pydantic.alias_generators import to_camel

DISCRIMINATOR = "$type"


class LexiconModel(BaseModel):
    """
    Base for lexicon objects.

    Attributes are snake_case in Python and camelCase on the wire. Unrecognised fields are kept
    so that a decoded object re-encodes with everything the server sent.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    lexicon_type: ClassVar[Optional[str]] = None
    """The ``$type`` tag identifying this object inside a union, when it can appear in one."""


@dataclass(frozen=True)
class UnknownVariant:
    """A union member whose tag is missing or not recognised."""

    type: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)


VariantsType = Union[Mapping[str, Type[LexiconModel]], Iterable[Type[LexiconModel]]]


def variant_registry(variants: VariantsType) -> Dict[str, Type[LexiconModel]]:
    if isinstance(variants, Mapping):
        return dict(variants)

    registry: Dict[str, Type[LexiconModel]] = {}
    for model in variants:
        if model.lexicon_type is None:
            raise ValueError(f"{model.__name__} has no lexicon_type")
        registry[model.lexicon_type] = model
    return registry


def decode_union(
    payload: Any,
    variants: VariantsType,
    discriminator: str = DISCRIMINATOR,
) -> Union[LexiconModel, UnknownVariant]:
    """
    Decode ``payload`` into the variant named by its discriminator.

    Raises:
        ValueError: ``payload`` is not a mapping.
        pydantic.ValidationError: The tag is known but the payload does not fit its model.
    """
    if not isinstance(payload, Mapping):
        raise ValueError(f"Union payload must be an object, got {type(payload).__name__}")

    tag = payload.get(discriminator)
    if not isinstance(tag, str):
        return UnknownVariant(type=None, fields=dict(payload))

    model = variant_registry(variants).get(tag)
    if model is None:
        return UnknownVariant(type=tag, fields=dict(payload))

    return model.model_validate(
        {key: value for key, value in payload.items() if key != discriminator}
    )


def encode_union(
    value: Union[LexiconModel, UnknownVariant, Mapping[str, Any]],
    discriminator: str = DISCRIMINATOR,
) -> Dict[str, Any]:
    """
    Encode a union member for the wire.

    Unknown variants are re-emitted exactly as captured. Known variants are written with their
    tag followed by their fields, ``None`` values omitted.
    """
    if isinstance(value, UnknownVariant):
        return dict(value.fields)

    if isinstance(value, LexiconModel):
        encoded = value.model_dump(mode="json", by_alias=True, exclude_none=True)
        encoded.pop(discriminator, None)
        if value.lexicon_type is None:
            return encoded
        return {discriminator: value.lexicon_type, **encoded}

    if isinstance(value, Mapping):
        return dict(value)

    raise TypeError(f"Cannot encode {type(value).__name__} as a union member")


class UnionDecoder:
    """
    A reusable decoder bound to one set of variants.

    Recursive unions (a thread node whose replies are thread nodes) pass a single zero-argument
    callable returning the variants; it is resolved on first use.
    """

    def __init__(
        self,
        *variants: Union[Type[LexiconModel], Callable[[], Iterable[Type[LexiconModel]]]],
        discriminator: str = DISCRIMINATOR,
    ):
        self._variants = variants
        self._registry: Optional[Dict[str, Type[LexiconModel]]] = None
        self.discriminator = discriminator

    @property
    def variants(self) -> Dict[str, Type[LexiconModel]]:
        if self._registry is None:
            models: Iterable[Any] = self._variants
            if len(self._variants) == 1 and not isinstance(self._variants[0], type):
                models = self._variants[0]()
            self._registry = variant_registry(models)
        return self._registry

    def decode(self, payload: Any) -> Union[LexiconModel, UnknownVariant]:
        return decode_union(payload, self.variants, self.discriminator)

    def encode(self, value: Union[LexiconModel, UnknownVariant]) -> Dict[str, Any]:
        return encode_union(value, self.discriminator)

    def validate(self, value: Any) -> Union[LexiconModel, UnknownVariant]:
        """Pydantic validator: already-built members pass through, mappings are decoded."""
        if isinstance(value, UnknownVariant):
            return value
        if isinstance(value, LexiconModel) and value.lexicon_type in self.variants:
            return value
        return self.decode(value)


def open_union(
    *variants: Union[Type[LexiconModel], Callable[[], Iterable[Type[LexiconModel]]]],
) -> Any:
    """
    Build an annotated type for a model field holding an open union of ``variants``.
    """
    decoder = UnionDecoder(*variants)
    return Annotated[
        Any,
        PlainValidator(decoder.validate),
        PlainSerializer(decoder.encode, return_type=Dict[str, Any]),
    ]
