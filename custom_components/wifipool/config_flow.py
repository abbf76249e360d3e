"""Config flow for the WiFiPool integration.

This module implements the user, re-auth, and options flows. Setup logs in to
the cloud, resolves the pool domain, and classifies the controller channels so
the created entry already carries its discovery result.
"""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigEntry, ConfigFlowResult
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import (
    CONF_DEVICE_UUID,
    CONF_DOMAIN_ID,
    CONF_EMAIL,
    CONF_IO_MAP,
    CONF_PASSWORD,
    CONF_POLL_INTERVAL,
    CONF_WRITABLE,
    DEFAULT_TIMEOUT_SECONDS,
    DOMAIN,
    LOGGER_NAME,
    MAX_POLL_INTERVAL_SECONDS,
    MIN_POLL_INTERVAL_SECONDS,
)
from .coordinator import poll_interval_seconds
from .wifipool import (
    AuthenticationError,
    ConfigurationError,
    DeviceNotFoundError,
    DomainResolutionError,
    NoGroupsError,
    WifiPoolClient,
    WifiPoolError,
    async_auto_discover,
)
from .wifipool.util import redact_email

_LOGGER = logging.getLogger(LOGGER_NAME)


STEP_USER_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_EMAIL): str,
        vol.Required(CONF_PASSWORD): str,
    }
)


STEP_REAUTH_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_PASSWORD): str,
    }
)


class CannotConnect(HomeAssistantError):
    """Error raised when the cloud cannot be reached."""


class InvalidAuth(HomeAssistantError):
    """Error raised when authentication fails."""


class NoDomain(HomeAssistantError):
    """Error raised when no pool domain could be resolved for the account."""


class NoDevice(HomeAssistantError):
    """Error raised when the resolved domain has no controller."""


async def _async_validate_input(
    hass: HomeAssistant, data: dict[str, Any]
) -> dict[str, Any]:
    """Log in and run channel discovery.

    Args:
        hass: Home Assistant instance.
        data: User input with email and password.

    Returns:
        Dict with `title`, `unique_id`, and the entry `data` to store.

    Raises:
        InvalidAuth: Credentials rejected.
        NoDomain: No accessible group resolved to a pool domain.
        NoDevice: The domain has no device entry.
        CannotConnect: Any other cloud failure.
    """
    email = str(data.get(CONF_EMAIL, "")).strip()
    password = str(data.get(CONF_PASSWORD, ""))

    client = WifiPoolClient(
        email=email,
        password=password,
        timeout_seconds=DEFAULT_TIMEOUT_SECONDS,
        session=async_get_clientsession(hass),
    )

    _LOGGER.debug("Validating WiFiPool account %s", redact_email(email))
    try:
        result = await async_auto_discover(client)
    except (AuthenticationError, ConfigurationError) as err:
        raise InvalidAuth from err
    except (NoGroupsError, DomainResolutionError) as err:
        raise NoDomain from err
    except DeviceNotFoundError as err:
        raise NoDevice from err
    except WifiPoolError as err:
        raise CannotConnect from err

    io_map = result.io_map
    return {
        "title": result.name,
        "unique_id": io_map.device_uuid,
        "data": {
            CONF_EMAIL: email,
            CONF_PASSWORD: password,
            CONF_DOMAIN_ID: io_map.domain,
            CONF_DEVICE_UUID: io_map.device_uuid,
            CONF_IO_MAP: io_map.as_dict(),
            CONF_WRITABLE: {},
        },
    }


class ConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for WiFiPool."""

    VERSION = 1

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        return OptionsFlow()

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the initial step.

        Args:
            user_input: User-provided input, if any.

        Returns:
            A Home Assistant flow result.
        """
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                info = await _async_validate_input(self.hass, dict(user_input))
            except CannotConnect:
                errors["base"] = "cannot_connect"
            except InvalidAuth:
                errors["base"] = "invalid_auth"
            except NoDomain:
                errors["base"] = "no_domain"
            except NoDevice:
                errors["base"] = "no_device"
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected exception")
                errors["base"] = "unknown"
            else:
                await self.async_set_unique_id(info["unique_id"])
                self._abort_if_unique_id_configured()
                return self.async_create_entry(title=info["title"], data=info["data"])

        return self.async_show_form(
            step_id="user", data_schema=STEP_USER_SCHEMA, errors=errors
        )

    async def async_step_reauth(self, user_input: dict[str, Any]) -> ConfigFlowResult:
        """Handle config entry re-authentication.

        Args:
            user_input: Existing entry data passed by Home Assistant.

        Returns:
            A Home Assistant flow result.
        """
        # NOTE: Home Assistant reserves `_reauth_entry_id` on ConfigFlow.
        self._wifipool_reauth_entry_id = (
            str((self.context or {}).get("entry_id") or "") or None
        )
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Prompt for an updated password and re-run discovery.

        Args:
            user_input: Updated credentials, if submitted.

        Returns:
            A Home Assistant flow result.
        """
        entry_id = getattr(self, "_wifipool_reauth_entry_id", None)
        if not entry_id:
            return self.async_abort(reason="unknown")

        entry = self.hass.config_entries.async_get_entry(entry_id)
        if entry is None:
            return self.async_abort(reason="unknown")

        errors: dict[str, str] = {}

        if user_input is not None:
            candidate: dict[str, Any] = dict(entry.data)
            candidate.update(user_input)
            try:
                info = await _async_validate_input(self.hass, candidate)
            except CannotConnect:
                errors["base"] = "cannot_connect"
            except InvalidAuth:
                errors["base"] = "invalid_auth"
            except NoDomain:
                errors["base"] = "no_domain"
            except NoDevice:
                errors["base"] = "no_device"
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected exception during reauth")
                errors["base"] = "unknown"
            else:
                if entry.unique_id and info["unique_id"] != entry.unique_id:
                    return self.async_abort(reason="different_device")

                merged: dict[str, Any] = dict(entry.data)
                merged.update(info["data"])
                # Keep what was learned about writable channels.
                merged[CONF_WRITABLE] = entry.data.get(CONF_WRITABLE, {})
                self.hass.config_entries.async_update_entry(entry, data=merged)
                self.hass.config_entries.async_schedule_reload(entry.entry_id)
                return self.async_abort(reason="reauth_successful")

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=STEP_REAUTH_SCHEMA,
            errors=errors,
            description_placeholders={CONF_EMAIL: str(entry.data.get(CONF_EMAIL, ""))},
        )


class OptionsFlow(config_entries.OptionsFlow):
    """Handle WiFiPool options."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Edit the poll interval.

        Args:
            user_input: Submitted options, if any.

        Returns:
            A Home Assistant flow result.
        """
        if user_input is not None:
            return self.async_create_entry(
                title="",
                data={CONF_POLL_INTERVAL: poll_interval_seconds(user_input)},
            )

        schema = vol.Schema(
            {
                vol.Required(
                    CONF_POLL_INTERVAL,
                    default=poll_interval_seconds(self.config_entry.options),
                ): vol.All(
                    vol.Coerce(int),
                    vol.Clamp(
                        min=MIN_POLL_INTERVAL_SECONDS, max=MAX_POLL_INTERVAL_SECONDS
                    ),
                ),
            }
        )
        return self.async_show_form(step_id="init", data_schema=schema)
