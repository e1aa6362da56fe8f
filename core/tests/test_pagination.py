from django.test import SimpleTestCase

from accounts.models import User
from core.pagination import apply_sort, build_pagination, parse_pagination


class ParsePaginationTests(SimpleTestCase):
    def test_defaults_when_query_empty(self):
        params = parse_pagination({})
        self.assertEqual(params.page, 1)
        self.assertEqual(params.limit, 12)
        self.assertEqual(params.skip, 0)
        self.assertEqual(params.sort, "-createdAt")

    def test_skip_follows_page_and_limit(self):
        params = parse_pagination({"page": "3", "limit": "20"})
        self.assertEqual((params.page, params.limit, params.skip), (3, 20, 40))

    def test_limit_is_capped(self):
        self.assertEqual(parse_pagination({"limit": "1000"}).limit, 100)

    def test_bad_values_fall_back_to_defaults(self):
        params = parse_pagination({"page": "abc", "limit": "-5"})
        self.assertEqual(params.page, 1)
        self.assertEqual(params.limit, 12)

    def test_leading_digits_are_read(self):
        params = parse_pagination({"page": "2.5", "limit": "5abc"})
        self.assertEqual((params.page, params.limit), (2, 5))

    def test_page_zero_becomes_one(self):
        self.assertEqual(parse_pagination({"page": "0"}).page, 1)

    def test_negative_page_is_clamped(self):
        params = parse_pagination({"page": "-4", "limit": "5"})
        self.assertEqual(params.page, 1)
        self.assertEqual(params.skip, 0)

    def test_custom_defaults(self):
        params = parse_pagination({}, {"limit": 20, "sort": "startDateTime"})
        self.assertEqual(params.limit, 20)
        self.assertEqual(params.sort, "startDateTime")


class BuildPaginationTests(SimpleTestCase):
    def test_page_count_rounds_up(self):
        self.assertEqual(
            build_pagination(25, 2, 10),
            {"page": 2, "limit": 10, "total": 25, "pages": 3},
        )

    def test_empty_result(self):
        self.assertEqual(build_pagination(0, 1, 12)["pages"], 0)


class ApplySortTests(SimpleTestCase):
    fields = {"createdAt": "created_at", "userName": "username"}

    def test_maps_api_keys_and_direction(self):
        qs = apply_sort(User.objects.all(), "-userName,createdAt", self.fields)
        self.assertEqual(qs.query.order_by, ("-username", "created_at"))

    def test_unknown_keys_use_default(self):
        qs = apply_sort(User.objects.all(), "password", self.fields)
        self.assertEqual(qs.query.order_by, ("-created_at",))
