class SQSTemplateException(Exception):
    pass


class EmptyMessageBodyError(SQSTemplateException):
    def __init__(self, message: str = "sqs: no message body passed") -> None:
        super().__init__(message)


class BodyParseError(SQSTemplateException):
    def __init__(self, message: str = "sqs: message parse body failed") -> None:
        super().__init__(message)


class InvalidAttributeContainerError(SQSTemplateException):
    def __init__(
        self, message: str = "sqs: message attributes must be a mapping or a record"
    ) -> None:
        super().__init__(message)


class InvalidTraceHeaderError(SQSTemplateException):
    pass


class MissingParameterError(SQSTemplateException):
    def __init__(self, parameter: str) -> None:
        self.parameter = parameter
        super().__init__(f"sqs: the parameter '{parameter}' is required and cannot be empty")


class TransportUnavailableError(SQSTemplateException):
    pass


class ConsumerFatalError(SQSTemplateException):
    """The poll loop gave up after too many consecutive fetch failures."""

    def __init__(self, queue_url: str, attempts: int) -> None:
        self.queue_url = queue_url
        self.attempts = attempts
        super().__init__(
            f"Stop consumer for {queue_url}: number of failed fetch attempts reached {attempts}"
        )
