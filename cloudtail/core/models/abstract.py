from typing import Callable, List, Any, Dict, Sequence

from cloudtail.core.aws import get_client
from cloudtail.exceptions import (
    MultipleObjectsReturned as BaseMultipleObjectsReturned,
    ObjectDoesNotExist,
)


class LazyAttributeMixin:

    def __init__(self) -> None:
        self.cache: Dict[str, Any] = {}
        super().__init__()

    def get_cached(self, key: str, populator: Callable, args: List[Any], kwargs: Dict[str, Any] = None) -> Any:
        kwargs = kwargs if kwargs else {}
        if key not in self.cache:
            self.cache[key] = populator(*args, **kwargs)
        return self.cache[key]


class Manager:
    """
    Read only access to one kind of AWS object.  Subclasses implement ``get`` and
    ``list``.
    """

    service: str

    @property
    def client(self):
        return get_client(self.service)

    def get(self, pk: str, **_) -> "Model":
        raise NotImplementedError

    list: Callable[..., Sequence["Model"]]


class Model(LazyAttributeMixin):
    """
    A thin wrapper around the dict AWS gives us when we describe an object.
    """

    objects: Manager

    class DoesNotExist(ObjectDoesNotExist):
        """
        We tried to get a single object but it does not exist in AWS.
        """
        pass

    class MultipleObjectsReturned(BaseMultipleObjectsReturned):
        """
        We expected to retrieve only one object but got multiple objects.
        """
        pass

    def __init__(self, data: Dict[str, Any]) -> None:
        super().__init__()
        self.data = data

    @property
    def pk(self) -> str:
        raise NotImplementedError

    @property
    def name(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return '{}(pk="{}")'.format(self.__class__.__name__, self.pk)
