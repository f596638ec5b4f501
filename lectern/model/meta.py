"""Metaclass for Model: reads class keyword options and stores them on the class."""

from pydantic._internal._model_construction import ModelMetaclass


class ModelMeta(ModelMetaclass):
    """Metaclass for Model: turns class keyword options into class attributes.

    ``class Post(Model, table="posts", soft_deletes=True): ...``

    Options left out are inherited from the first base that sets them, except
    ``morph_class``, which names one class only.
    """

    def __new__(mcs, name, bases, namespace,
                table: str = None,
                primary_key: str = None,
                hidden: tuple[str] = None,
                with_: tuple[str] = None,
                soft_deletes: bool = None,
                morph_class: str = None,
                morph_types: tuple[str] = None,
                casts: dict = None,
                global_scopes: tuple = None,
                schema=None,
                relations: dict = None,
                **kwargs):
        result = super().__new__(mcs, name, bases, namespace, **kwargs)

        def inherit(attribute: str, value, default):
            if value is not None:
                return value
            for base in bases:
                inherited = getattr(base, attribute, None)
                if inherited is not None:
                    return inherited
            return default

        result._TABLE = inherit("_TABLE", table, None)
        result._PRIMARY_KEY = inherit("_PRIMARY_KEY", primary_key, "id")
        result._HIDDEN = tuple(inherit("_HIDDEN", hidden, ()))
        result._WITH = tuple(inherit("_WITH", with_, ()))
        result._SOFT_DELETES = bool(inherit("_SOFT_DELETES", soft_deletes, False))
        result._MORPH_CLASS = morph_class
        result._MORPH_TYPES = tuple(inherit("_MORPH_TYPES", morph_types, ()))
        result._CASTS = dict(inherit("_CASTS", casts, {}))
        result._GLOBAL_SCOPES = tuple(inherit("_GLOBAL_SCOPES", global_scopes, ()))
        result._SCHEMA = inherit("_SCHEMA", schema, None)
        result._RELATIONS = dict(inherit("_RELATIONS", relations, {}))
        return result
