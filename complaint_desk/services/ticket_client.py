"""
Ticket Store API Client

Typed wrapper around the Ticket Store REST contract:
- Ticket intake (non-blocking create)
- Ticket listing with server-side filters
- Ticket fetch, draft update, resolve, delete
- Aggregate statistics

Transport failures are normalized into the TicketClientError hierarchy so
callers only ever see a user-displayable message.
"""
import asyncio
from typing import Any, Dict, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from complaint_desk.config import get_settings
from complaint_desk.lifecycle.state_machine import invariant_violations
from complaint_desk.models.schemas import (
    ErrorResponse,
    TicketCreate,
    TicketCreateResponse,
    TicketListFilters,
    TicketListResponse,
    TicketResolve,
    TicketStats,
    TicketUpdate,
)
from complaint_desk.models.ticket import Ticket, TicketStatus
from complaint_desk.services.errors import (
    GENERIC_SERVER_MESSAGE,
    TicketClientError,
    TicketConnectionError,
    TicketPreconditionError,
    TicketServerError,
    TicketUnexpectedError,
    TicketValidationError,
    validation_error_from,
)
from complaint_desk.utils.logger import get_logger
from complaint_desk.utils.validators import validate_ticket_id

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TICKETS_ENDPOINT = "api/tickets/"
STATS_ENDPOINT = "api/tickets/stats/summary"
RETRYABLE_STATUS_CODES = (429, 502, 503, 504)


def _validate(model: Type[ModelT], data: Union[ModelT, Dict[str, Any]]) -> ModelT:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise validation_error_from(e) from e


def _parse(model: Type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Malformed {model.__name__} payload from Ticket Store: {e}")
        raise TicketUnexpectedError() from e


def _extract_detail(response: httpx.Response) -> Optional[str]:
    """Pull the user-facing `detail` out of an error body, if any"""
    try:
        body = ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return None

    if isinstance(body.detail, str):
        return body.detail or None
    if isinstance(body.detail, list):
        messages = [str(item["msg"]) for item in body.detail if item.get("msg")]
        return "; ".join(messages) or None
    return None


class TicketClient:
    """
    Ticket Store API integration with retry logic and error handling
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.headers = {
            "Content-Type": "application/json"
        }
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = max(1, max_retries if max_retries is not None else settings.max_retries)
        self._transport = transport

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        state_dependent: bool = False,
        **kwargs
    ) -> Any:
        """
        Make HTTP request with retry logic

        Only GET requests are retried; mutations are sent exactly once.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            endpoint: API endpoint relative to the base URL
            state_dependent: Treat 400 responses as lifecycle precondition failures
            **kwargs: Additional arguments for httpx

        Returns:
            Response JSON, or None for empty responses

        Raises:
            TicketClientError: On any failure, after retries
        """
        url = f"{self.base_url}/{endpoint}"
        attempts = self.max_retries if method == "GET" else 1

        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self.headers,
                        **kwargs
                    )
                    response.raise_for_status()
                    if response.status_code == 204 or not response.content:
                        return None
                    return response.json()

            except httpx.HTTPStatusError as e:
                if e.response.status_code in RETRYABLE_STATUS_CODES and attempt < attempts - 1:
                    wait_time = 2 ** attempt  # Exponential backoff
                    logger.warning(
                        f"{method} {endpoint} failed (attempt {attempt + 1}/{attempts}), "
                        f"retrying in {wait_time}s: {e.response.status_code}"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise self._error_from_response(e.response, method, endpoint, state_dependent) from e
            except httpx.TransportError as e:
                logger.error(f"{method} {endpoint} got no response: {e!r}")
                raise TicketConnectionError() from e
            except ValueError as e:
                logger.error(f"{method} {endpoint} returned a non-JSON body: {e}")
                raise TicketUnexpectedError() from e
            except Exception as e:
                logger.error(f"{method} {endpoint} failed unexpectedly: {e!r}")
                raise TicketUnexpectedError() from e

    def _error_from_response(
        self,
        response: httpx.Response,
        method: str,
        endpoint: str,
        state_dependent: bool
    ) -> TicketClientError:
        status_code = response.status_code
        message = _extract_detail(response) or GENERIC_SERVER_MESSAGE

        if status_code == 409 or (state_dependent and status_code == 400):
            logger.warning(f"{method} {endpoint} rejected by precondition ({status_code}): {message}")
            return TicketPreconditionError(message, status_code=status_code)

        logger.error(f"{method} {endpoint} failed ({status_code}): {message}")
        return TicketServerError(message, status_code=status_code)

    @staticmethod
    def _ticket_path(ticket_id: str) -> str:
        if not validate_ticket_id(ticket_id):
            raise TicketValidationError(
                f"Invalid ticket ID: {ticket_id!r}",
                field_errors={"id": "Invalid ticket ID"}
            )
        return f"{TICKETS_ENDPOINT}{ticket_id}"

    async def create_ticket(
        self,
        data: Union[TicketCreate, Dict[str, Any]]
    ) -> TicketCreateResponse:
        """
        Submit a new complaint (non-blocking)

        The Ticket Store acknowledges with the new ID and the initial
        `pending` status; triage happens asynchronously.

        Args:
            data: Intake fields (title, description, customer_email, customer_name)

        Returns:
            Creation acknowledgment

        Raises:
            TicketValidationError: Before any request when input is invalid
        """
        payload = _validate(TicketCreate, data)
        logger.info(f"Creating ticket '{payload.title}'")
        result = await self._make_request(
            "POST",
            TICKETS_ENDPOINT,
            json=payload.model_dump(mode="json", exclude_none=True)
        )
        ack = _parse(TicketCreateResponse, result)
        logger.info(f"Created ticket {ack.id} ({ack.status.value})")
        return ack

    async def list_tickets(
        self,
        filters: Optional[TicketListFilters] = None,
        **filter_kwargs
    ) -> TicketListResponse:
        """
        Fetch tickets with optional server-side filtering

        Args:
            filters: Filter set; alternatively pass status/urgency/category/
                limit/offset as keyword arguments

        Returns:
            Total count and the filtered items
        """
        if filters is None:
            filters = _validate(TicketListFilters, filter_kwargs)
        params = filters.to_params()

        logger.info(f"Fetching tickets (filters={params})")
        result = await self._make_request("GET", TICKETS_ENDPOINT, params=params)
        listing = _parse(TicketListResponse, result)
        logger.info(f"Fetched {len(listing.items)} tickets (total: {listing.total})")
        return listing

    async def get_ticket(self, ticket_id: str) -> Ticket:
        """
        Get ticket details by ID

        Args:
            ticket_id: Ticket ID

        Returns:
            Current canonical ticket
        """
        path = self._ticket_path(ticket_id)
        logger.info(f"Fetching ticket {ticket_id}")
        return _parse(Ticket, await self._make_request("GET", path))

    async def update_ticket(
        self,
        ticket_id: str,
        data: Union[TicketUpdate, Dict[str, Any]]
    ) -> Ticket:
        """
        Save a draft edit (final response and/or agent notes)

        Does not change status. The returned ticket is canonical and must
        replace any locally edited copy.

        Args:
            ticket_id: Ticket ID
            data: Fields to update

        Returns:
            Updated ticket
        """
        path = self._ticket_path(ticket_id)
        payload = _validate(TicketUpdate, data)
        logger.info(f"Updating draft of ticket {ticket_id}")
        result = await self._make_request(
            "PATCH",
            path,
            state_dependent=True,
            json=payload.model_dump(mode="json", exclude_none=True)
        )
        return _parse(Ticket, result)

    async def resolve_ticket(
        self,
        ticket_id: str,
        data: Union[TicketResolve, Dict[str, Any]]
    ) -> Ticket:
        """
        Resolve a ready ticket

        Args:
            ticket_id: Ticket ID
            data: final_response, resolved_by and optional agent_notes

        Returns:
            Resolved ticket

        Raises:
            TicketValidationError: Before any request when input is invalid
            TicketPreconditionError: When the ticket is no longer ready
        """
        path = self._ticket_path(ticket_id)
        payload = _validate(TicketResolve, data)
        logger.info(f"Resolving ticket {ticket_id} as {payload.resolved_by}")
        result = await self._make_request(
            "POST",
            f"{path}/resolve",
            state_dependent=True,
            json=payload.model_dump(mode="json", exclude_none=True)
        )
        ticket = _parse(Ticket, result)

        if ticket.status != TicketStatus.RESOLVED or invariant_violations(ticket):
            logger.error(
                f"Resolve of ticket {ticket_id} returned an inconsistent ticket "
                f"(status={ticket.status.value})"
            )
            raise TicketUnexpectedError()
        return ticket

    async def delete_ticket(self, ticket_id: str) -> None:
        """
        Delete a ticket (administrative)

        Args:
            ticket_id: Ticket ID
        """
        path = self._ticket_path(ticket_id)
        logger.info(f"Deleting ticket {ticket_id}")
        await self._make_request("DELETE", path)

    async def get_stats(self) -> TicketStats:
        """
        Get aggregate counts by status and urgency

        Returns:
            Ticket statistics (unfiltered)
        """
        logger.info("Fetching ticket statistics")
        return _parse(TicketStats, await self._make_request("GET", STATS_ENDPOINT))
