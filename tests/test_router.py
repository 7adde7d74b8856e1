from models import PRICE_INCREASE, PRODUCT_ADDED, Subscriber
from router import is_apple_device, partition, route
from tests.conftest import make_change


def test_is_apple_device_keywords():
    assert is_apple_device("iPhone 15 Pro 256GB", "Mobile")
    assert is_apple_device("Watch Series 9", "Apple")
    assert is_apple_device("MacBook Air M3", None)
    assert is_apple_device("Mac Studio M2", "")
    assert is_apple_device("AIRPODS PRO 2", "Audio")


def test_is_apple_device_other_brands():
    assert not is_apple_device("Galaxy S24", "Samsung")
    assert not is_apple_device("Pixel 8", "Google")
    assert not is_apple_device(None, None)
    assert not is_apple_device("", "")


def test_partition_is_disjoint_and_complete():
    changes = [
        make_change(PRICE_INCREASE, 1, brand_name="Apple", product_name="iPad Air"),
        make_change(PRICE_INCREASE, 2, brand_name="Samsung", product_name="Galaxy Tab"),
        make_change(PRODUCT_ADDED, 3, brand_name="Xiaomi", product_name="Redmi Note"),
        make_change(PRODUCT_ADDED, 4, brand_name="Mobile", product_name="iPhone 15"),
    ]

    apple, other = partition(changes)

    assert [c.product_id for c in apple] == [1, 4]
    assert [c.product_id for c in other] == [2, 3]
    assert not {id(c) for c in apple} & {id(c) for c in other}
    assert len(apple) + len(other) == len(changes)


def test_route_by_preferences():
    apple_change = make_change(PRICE_INCREASE, 1, brand_name="Apple", product_name="iMac 24")
    other_change = make_change(PRICE_INCREASE, 2, brand_name="Sony", product_name="WH-1000XM5")
    subscribers = [
        Subscriber(user_id=10, receive_apple=True, receive_non_apple=True),
        Subscriber(user_id=11, receive_apple=True, receive_non_apple=False),
        Subscriber(user_id=12, receive_apple=False, receive_non_apple=True),
        Subscriber(user_id=13, receive_apple=False, receive_non_apple=False),
    ]

    routed = route([other_change, apple_change], subscribers)

    assert set(routed) == {10, 11, 12}
    assert routed[10] == [apple_change, other_change]
    assert routed[11] == [apple_change]
    assert routed[12] == [other_change]


def test_route_omits_subscribers_with_empty_selection():
    other_change = make_change(PRICE_INCREASE, 2, brand_name="Sony", product_name="PlayStation 5")
    subscribers = [Subscriber(user_id=11, receive_apple=True, receive_non_apple=False)]

    assert route([other_change], subscribers) == {}


def test_route_without_changes():
    assert route([], [Subscriber(user_id=1)]) == {}
