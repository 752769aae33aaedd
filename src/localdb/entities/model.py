"""
Model and Collection - Record Contract for Repositories

📦 Object Model Layer:
Pydantic models that know their storage key, identity and indexed fields,
and collections that group them. Both persist through a repository's
``sync`` dispatch.
"""

from typing import Any, ClassVar, Dict, Iterator, List, Optional, Type, Union, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ..persistence.repositories.base import RepositoryError

if TYPE_CHECKING:
    from ..persistence.repositories.local import LocalRepository


class Model(BaseModel):
    """
    Base class for persisted records.

    Subclasses declare their fields with pydantic annotations; undeclared
    attributes are accepted and stored as well.

    Class attributes:
        collection_name: Key prefix; defaults to the lower-cased class name
        type: Record type used in error messages; defaults to the class name
        id_attribute: Name of the identity field
        indexes: Fields usable for fetch-by-attributes lookups
        db: Repository the model persists to
    """

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    id: Optional[Any] = None

    collection_name: ClassVar[Optional[str]] = None
    type: ClassVar[Optional[str]] = None
    id_attribute: ClassVar[str] = "id"
    indexes: ClassVar[List[Any]] = []
    db: ClassVar[Optional['LocalRepository']] = None

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        if "collection_name" not in cls.__dict__:
            cls.collection_name = cls.__name__.lower()
        if "type" not in cls.__dict__:
            cls.type = cls.__name__

    # Record contract
    @property
    def attributes(self) -> Dict[str, Any]:
        return self.model_dump()

    def get(self, field: str) -> Any:
        return self.attributes.get(field)

    def set(self, field: Union[str, Dict[str, Any]], value: Any = None) -> 'Model':
        """Set one field, or every field of a mapping."""
        values = field if isinstance(field, dict) else {field: value}
        for name, item in values.items():
            setattr(self, name, item)
        return self

    def is_new(self) -> bool:
        return self.get(self.id_attribute) is None

    def to_json(self) -> Any:
        return self.model_dump(mode="json")

    def url(self) -> str:
        if self.is_new():
            return self.collection_name
        return f"{self.collection_name}:{self.get(self.id_attribute)}"

    # Persistence
    @classmethod
    def repository(cls) -> 'LocalRepository':
        if cls.db is None:
            raise RepositoryError(f"{cls.__name__} is not bound to a repository")
        return cls.db

    async def save(self, attrs: Optional[Dict[str, Any]] = None, **options: Any) -> Any:
        """Set ``attrs`` then create or update the stored record."""
        if attrs:
            self.set(attrs)
        method = "create" if self.is_new() else "update"
        return await self.repository().sync(method, self, options)

    async def fetch(self, **options: Any) -> 'Model':
        """Reload attributes from the store."""
        data = await self.repository().sync("read", self, options)
        if isinstance(data, dict):
            self.set(data)
        return self

    async def destroy(self, **options: Any) -> Any:
        return await self.repository().sync("delete", self, options)


class Collection:
    """An ordered group of models of one class."""

    model: ClassVar[Type[Model]] = Model

    def __init__(self, models: Optional[List[Union[Model, Dict[str, Any]]]] = None):
        self.models: List[Model] = []
        self.reset(models or [])

    @property
    def db(self) -> 'LocalRepository':
        return self.model.repository()

    def url(self) -> Optional[str]:
        return self.model.collection_name

    def reset(self, models: List[Union[Model, Dict[str, Any]]]) -> 'Collection':
        self.models = [self._prepare(item) for item in models]
        return self

    def add(self, item: Union[Model, Dict[str, Any]]) -> Model:
        model = self._prepare(item)
        self.models.append(model)
        return model

    def _prepare(self, item: Union[Model, Dict[str, Any]]) -> Model:
        return item if isinstance(item, Model) else self.model(**item)

    def get(self, record_id: Any) -> Optional[Model]:
        for model in self.models:
            if model.get(model.id_attribute) == record_id:
                return model
        return None

    def pluck(self, field: str) -> List[Any]:
        return [model.get(field) for model in self.models]

    def to_json(self) -> List[Any]:
        return [model.to_json() for model in self.models]

    async def fetch(self, **options: Any) -> 'Collection':
        """Replace the contents with the result of a repository query."""
        data = await self.db.sync("read", self, options)
        self.reset(data)
        return self

    async def create(self, attrs: Dict[str, Any], **options: Any) -> Model:
        """Build, save and add a new model."""
        model = self.model(**attrs)
        await model.save(**options)
        self.models.append(model)
        return model

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[Model]:
        return iter(self.models)

    def __getitem__(self, index: int) -> Model:
        return self.models[index]


__all__ = ["Model", "Collection"]
