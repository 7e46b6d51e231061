import pytest
from bson import ObjectId


class TestSendFriendRequest:
    """Sending friend requests"""

    @pytest.mark.asyncio
    async def test_send(self, social, create_user, clock):
        alice = await create_user("alice")
        bob = await create_user("bob")

        assert await social.send_friend_request(alice.id, bob.id) is True

        [request] = await social.get_friend_requests(bob.id)
        assert request.sender == alice.id
        assert request.receiver == bob.id
        assert request.created_at == clock.now

    @pytest.mark.asyncio
    async def test_send_twice_keeps_one_request(self, social, create_user, clock):
        """Re-sending does not duplicate or refresh the request."""
        alice = await create_user("alice")
        bob = await create_user("bob")
        sent_at = clock.now

        await social.send_friend_request(alice.id, bob.id)
        clock.advance(60)
        await social.send_friend_request(str(alice.id), str(bob.id))

        requests = await social.get_friend_requests(bob.id)
        assert len(requests) == 1
        assert requests[0].created_at == sent_at

    @pytest.mark.asyncio
    async def test_blocked_sender_is_refused(self, social, create_user):
        """A receiver that blocked the sender never sees the request."""
        alice = await create_user("alice")
        bob = await create_user("bob", blocked_user_ids=[alice.id])

        assert await social.send_friend_request(alice.id, bob.id) is False
        assert await social.friend_requests.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_unknown_receiver_is_refused(self, social, create_user):
        alice = await create_user("alice")

        assert await social.send_friend_request(alice.id, ObjectId()) is False
        assert await social.friend_requests.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_requests_are_directional(self, social, create_user):
        alice = await create_user("alice")
        bob = await create_user("bob")

        await social.send_friend_request(alice.id, bob.id)

        assert await social.get_friend_requests(alice.id) == []


class TestConsumeFriendRequest:
    """Accepting and rejecting friend requests"""

    @pytest.mark.asyncio
    async def test_accept(self, social, create_user):
        """Accepting makes both users friends and closes the request."""
        alice = await create_user("alice")
        bob = await create_user("bob")
        await social.send_friend_request(alice.id, bob.id)

        await social.consume_friend_request(bob.id, alice.id)

        alice = await social.find_user(alice.id)
        bob = await social.find_user(bob.id)
        assert alice.friend_ids == [bob.id]
        assert bob.friend_ids == [alice.id]
        assert await social.get_friend_requests(bob.id) == []

    @pytest.mark.asyncio
    async def test_reject(self, social, create_user):
        """Rejecting closes the request without a friendship."""
        alice = await create_user("alice")
        bob = await create_user("bob")
        await social.send_friend_request(alice.id, bob.id)

        await social.consume_friend_request(bob.id, alice.id, accept=False)

        assert (await social.find_user(alice.id)).friend_ids == []
        assert (await social.find_user(bob.id)).friend_ids == []
        assert await social.get_friend_requests(bob.id) == []

    @pytest.mark.asyncio
    async def test_accept_twice_keeps_single_friendship(self, social, create_user):
        alice = await create_user("alice")
        bob = await create_user("bob")

        await social.consume_friend_request(bob.id, alice.id)
        await social.consume_friend_request(bob.id, alice.id)

        assert (await social.find_user(bob.id)).friend_ids == [alice.id]


class TestFriendRequestProfiles:
    """Profiles of users with pending requests"""

    @pytest.mark.asyncio
    async def test_profiles_of_senders(self, social, create_user):
        alice = await create_user("alice", email="alice@example.com")
        carol = await create_user("carol")
        bob = await create_user("bob")
        await social.send_friend_request(alice.id, bob.id)
        await social.send_friend_request(carol.id, bob.id)

        requests = await social.get_friend_requests(bob.id)
        profiles = await social.get_friend_requests_profile(requests)

        assert sorted(profile.username for profile in profiles) == ["alice", "carol"]
        assert all(profile.email is None for profile in profiles)

    @pytest.mark.asyncio
    async def test_profiles_with_fields(self, social, create_user):
        alice = await create_user("alice", email="alice@example.com")
        bob = await create_user("bob")
        await social.send_friend_request(alice.id, bob.id)

        requests = await social.get_friend_requests(bob.id)
        [profile] = await social.get_friend_requests_profile(requests, ["_id", "email"])

        assert profile.id == alice.id
        assert profile.email == "alice@example.com"
        assert profile.username is None

    @pytest.mark.asyncio
    async def test_no_requests(self, social):
        assert await social.get_friend_requests_profile([]) == []
