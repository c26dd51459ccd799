from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransactionSettings(BaseSettings):
    """Process wide defaults, read once from the environment.

    Example:

    ```
    AUTO_TRANSACTION_CONNECTION=reporting
    AUTO_TRANSACTION_ATTEMPTS=3
    AUTO_TRANSACTION_THROW=false
    AUTO_TRANSACTION_ROUTES='["api/*", "admin/*"]'
    ```
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTO_TRANSACTION_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    connection: Optional[str] = Field(
        default=None,
        description="Connection used when a call does not name one",
    )
    attempts: int = Field(
        default=1,
        ge=1,
        description="How many times a unit of work is attempted",
    )
    throw_on_failure: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "AUTO_TRANSACTION_THROW",
            "AUTO_TRANSACTION_THROW_ON_FAILURE",
        ),
        description="Raise TransactionError instead of returning None",
    )
    routes: List[str] = Field(
        default_factory=list,
        description="Path globs the HTTP middleware is limited to",
    )


@dataclass(frozen=True)
class ExecutionConfig:
    connection: Optional[str] = None
    attempts: int = 1
    throw_on_failure: bool = True

    @classmethod
    def build(
        cls,
        defaults: TransactionSettings,
        connection: Optional[str] = None,
        attempts: Optional[int] = None,
        throw_on_failure: Optional[bool] = None,
    ) -> ExecutionConfig:
        """Fill the missing values of a request from the process defaults

        Args:
            defaults (TransactionSettings): The process defaults
            connection (str, optional): Connection name. Defaults to `None`.
            attempts (int, optional): Maximum attempts. Values lower than
                one are treated as one. Defaults to `None`.
            throw_on_failure (bool, optional): Whether to raise on failure.
                Defaults to `None`.

        Returns:
            ExecutionConfig: The normalized configuration
        """
        if connection is None:
            connection = defaults.connection
        if attempts is None:
            attempts = defaults.attempts
        if throw_on_failure is None:
            throw_on_failure = defaults.throw_on_failure
        return cls(
            connection=connection,
            attempts=max(1, int(attempts)),
            throw_on_failure=bool(throw_on_failure),
        )
