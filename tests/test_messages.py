import unittest

from soup_story.errors import NetworkError, ParseError, UpstreamError
from soup_story.messages import error_message, evaluation_label, resolve_language
from soup_story.utils import clamp_completion, compose_story, strip_code_fence


class TestMessages(unittest.TestCase):

    def test_resolve_language(self):
        self.assertEqual(resolve_language("zh-TW"), "zh")
        self.assertEqual(resolve_language("zh_CN"), "zh")
        self.assertEqual(resolve_language("en-US,en;q=0.8"), "en")
        self.assertEqual(resolve_language("fr"), "en")
        self.assertEqual(resolve_language(None, fallback="zh"), "zh")

    def test_error_message(self):
        self.assertEqual(error_message("UPSTREAM", "zh"), "评估错误")
        self.assertEqual(error_message("NETWORK", "en"), "Network problem, please try again.")
        self.assertEqual(error_message("NO_SUCH_CODE", "en"), "Something went wrong.")

    def test_evaluation_label(self):
        self.assertEqual(evaluation_label("yes", "en"), "Evaluation: YES")
        self.assertEqual(evaluation_label("not_sure", "zh"), "评估结果：不确定")
        self.assertEqual(evaluation_label("garbage", "en"), "Evaluation: NOT SURE")


class TestErrors(unittest.TestCase):

    def test_parse_error_is_upstream(self):
        err = ParseError("bad json", upstream_status=200)
        self.assertIsInstance(err, UpstreamError)
        self.assertEqual(err.status_code, 502)
        self.assertEqual(err.to_dict()["upstream_status"], 200)

    def test_network_error_retryable(self):
        err = NetworkError("timeout")
        self.assertTrue(err.retryable)
        self.assertEqual(err.status_code, 503)
        self.assertNotIn("upstream_status", err.details)


class TestUtils(unittest.TestCase):

    def test_clamp_completion(self):
        self.assertEqual(clamp_completion(None), 0.0)
        self.assertEqual(clamp_completion(float("nan")), 0.0)
        self.assertEqual(clamp_completion(-0.2), 0.0)
        self.assertEqual(clamp_completion(1.4), 1.0)
        self.assertEqual(clamp_completion(0.42), 0.42)

    def test_compose_story(self):
        self.assertEqual(compose_story("Opening ", ["  a", "", "b"]), "Opening\n\na\n\nb")
        self.assertEqual(compose_story("", []), "")

    def test_strip_code_fence(self):
        self.assertEqual(strip_code_fence('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(strip_code_fence('{"a": 1}'), '{"a": 1}')


if __name__ == "__main__":
    unittest.main()
