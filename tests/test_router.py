import pytest

from chat_rpc_bridge.data import APIRouteInfo, HttpMethod
from chat_rpc_bridge.router import Router


def handler(req, res) -> None:
    pass


def other_handler(req, res) -> None:
    pass


@pytest.fixture
def router():
    return Router()


class TestRouter:
    def test_register(self, router) -> None:
        route = router.register("get", "/balance/:userId", handler, "Balance of a user")
        assert route.method is HttpMethod.GET
        assert route.param_names == ("userId",)
        assert route.docs == "Balance of a user"
        assert len(router) == 1
        assert list(router) == [route]

    def test_register_unknown_method(self, router) -> None:
        with pytest.raises(ValueError, match="Unsupported method"):
            router.register("FETCH", "/x", handler)

    def test_match_params(self, router) -> None:
        router.register(HttpMethod.GET, "/balance/:userId", handler)
        match = router.match(HttpMethod.GET, "/balance/742396813826457750")
        assert match is not None
        assert match.route.handler is handler
        assert match.params == {"userId": "742396813826457750"}

    def test_match_several_params_in_order(self, router) -> None:
        router.register(HttpMethod.POST, "/guilds/:guildId/members/:memberId/roles", handler)
        match = router.match("POST", "/guilds/g1/members/m 2/roles")
        assert match.params == {"guildId": "g1", "memberId": "m 2"}

    def test_param_does_not_cross_slashes(self, router) -> None:
        router.register(HttpMethod.GET, "/balance/:userId", handler)
        assert router.match(HttpMethod.GET, "/balance/1/2") is None
        assert router.match(HttpMethod.GET, "/balance/") is None

    def test_anchored_with_optional_trailing_slash(self, router) -> None:
        router.register(HttpMethod.GET, "/items", handler)
        assert router.match(HttpMethod.GET, "/items") is not None
        assert router.match(HttpMethod.GET, "/items/") is not None
        assert router.match(HttpMethod.GET, "/items/extra") is None
        assert router.match(HttpMethod.GET, "/prefix/items") is None

    def test_literal_text_is_not_a_pattern(self, router) -> None:
        router.register(HttpMethod.GET, "/v1.0/files/:name.json", handler)
        assert router.match(HttpMethod.GET, "/v1.0/files/report.json").params == {
            "name": "report"
        }
        assert router.match(HttpMethod.GET, "/v1x0/files/report.json") is None

    def test_method_must_match(self, router) -> None:
        router.register(HttpMethod.GET, "/items", handler)
        assert router.match(HttpMethod.DELETE, "/items") is None

    def test_first_registered_wins(self, router) -> None:
        router.register(HttpMethod.GET, "/users/:id", handler)
        router.register(HttpMethod.GET, "/users/me", other_handler)
        assert router.match(HttpMethod.GET, "/users/me").route.handler is handler

        router = Router()
        router.register(HttpMethod.GET, "/users/me", other_handler)
        router.register(HttpMethod.GET, "/users/:id", handler)
        assert router.match(HttpMethod.GET, "/users/me").route.handler is other_handler
        assert router.match(HttpMethod.GET, "/users/42").params == {"id": "42"}

    def test_describe_in_registration_order(self, router) -> None:
        router.register(HttpMethod.POST, "/pay/:userId", handler, "Pay a user")
        router.register(HttpMethod.GET, "/balance/:userId", handler)
        assert router.describe() == [
            APIRouteInfo(HttpMethod.POST, "/pay/:userId", "Pay a user"),
            APIRouteInfo(HttpMethod.GET, "/balance/:userId", None),
        ]
