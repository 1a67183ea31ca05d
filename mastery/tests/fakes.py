class FakeJudge:
    """Records calls and answers with a canned verdict or error."""

    def __init__(self, verdict=None, error=None, block=None):
        self.verdict = verdict
        self.error = error
        self.block = block
        self.calls = []

    def judge(self, question, expected_answer, user_answer, context=None):
        self.calls.append((question, expected_answer, user_answer, context))
        if self.block is not None:
            self.block.wait(timeout=2)
        if self.error is not None:
            raise self.error
        return self.verdict


class FakeMessages:
    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        return self.reply


class FakeAnthropicClient:
    def __init__(self, reply):
        self.messages = FakeMessages(reply)
