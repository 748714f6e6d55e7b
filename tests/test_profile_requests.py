from decimal import Decimal

import pytest

from conftest import NOW, run
from invoicing.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from invoicing.models import ClientStatus, ProfileRequestStatus
from invoicing.schemas.profile_request import ProfileRequestCreate


def profile(**extra):
    return ProfileRequestCreate(
        name=extra.pop("name", "Initech"),
        email=extra.pop("email", "Billing@Initech.com"),
        **extra,
    )


def test_submit_resolves_business_by_email(services, seed) -> None:
    ids = seed()

    request = run(services.profiles.submit(profile(
        business_email="OWNER@example.com",
        tax_id="27aapfu0939f1zv",
        address={"city": "Pune"},
    )))

    assert request.business_user_id == ids.user_id
    assert request.status == ProfileRequestStatus.PENDING
    assert request.email == "billing@initech.com"
    assert request.tax_id == "27AAPFU0939F1ZV"
    assert request.address["city"] == "Pune"


def test_submit_requires_a_known_business(services, seed) -> None:
    seed()

    with pytest.raises(ValidationError, match="Business id or email is required"):
        run(services.profiles.submit(profile()))
    with pytest.raises(NotFoundError):
        run(services.profiles.submit(profile(business_email="nobody@example.com")))
    with pytest.raises(NotFoundError):
        run(services.profiles.submit(profile(business_user_id="missing")))


def test_approve_creates_client_without_portal_access(services, seed, load_client) -> None:
    ids = seed()
    request = run(services.profiles.submit(profile(business_user_id=ids.user_id, phone="555-0100")))

    approved, client = run(services.profiles.approve(request.id, ids.user_id))

    assert approved.status == ProfileRequestStatus.APPROVED
    assert approved.reviewed_by == ids.user_id
    assert approved.reviewed_at == NOW
    assert approved.client_id == client.id

    stored = load_client(client.id)
    assert stored.user_id == ids.user_id
    assert stored.email == "billing@initech.com"
    assert stored.phone == "555-0100"
    assert stored.status == ClientStatus.ACTIVE
    assert stored.is_approved is False
    assert stored.total_outstanding == Decimal("0")


def test_reviewed_request_is_terminal(services, seed) -> None:
    ids = seed()
    approved = run(services.profiles.submit(profile(business_user_id=ids.user_id)))
    rejected = run(services.profiles.submit(profile(business_user_id=ids.user_id, email="x@initech.com")))
    run(services.profiles.approve(approved.id, ids.user_id))
    run(services.profiles.reject(rejected.id, ids.user_id))

    with pytest.raises(InvalidStateError, match="Request is not pending"):
        run(services.profiles.approve(approved.id, ids.user_id))
    with pytest.raises(InvalidStateError):
        run(services.profiles.approve(rejected.id, ids.user_id))


def test_existing_client_email_blocks_approval(services, seed) -> None:
    ids = seed()
    request = run(services.profiles.submit(profile(business_user_id=ids.user_id, email="client@example.com")))

    with pytest.raises(ConflictError, match="Client with this email already exists"):
        run(services.profiles.approve(request.id, ids.user_id))

    pending = run(services.profiles.list_for_business(ids.user_id))
    assert [r.id for r in pending] == [request.id]


def test_requests_are_scoped_to_their_business(services, seed) -> None:
    owner = seed()
    other = seed(email="other@example.com", client_email="other@example.com")
    request = run(services.profiles.submit(profile(business_user_id=owner.user_id)))

    assert run(services.profiles.list_for_business(other.user_id)) == []
    with pytest.raises(NotFoundError):
        run(services.profiles.reject(request.id, other.user_id))


def test_list_filters_by_status(services, seed) -> None:
    ids = seed()
    first = run(services.profiles.submit(profile(business_user_id=ids.user_id)))
    second = run(services.profiles.submit(profile(business_user_id=ids.user_id, email="x@initech.com")))
    run(services.profiles.reject(first.id, ids.user_id))

    pending = run(services.profiles.list_for_business(ids.user_id))
    everything = run(services.profiles.list_for_business(ids.user_id, status=None))

    assert [r.id for r in pending] == [second.id]
    assert {r.id for r in everything} == {first.id, second.id}
