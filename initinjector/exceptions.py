class BaseInjectorException(Exception):
    """
    Base exception that can take an error message and context information.
    """

    message: str
    context: dict
    default_message = "An error occurred."

    def __init__(self, message: str = default_message, **kwargs):
        self.message = message.format(**kwargs)
        self.context = dict(**kwargs)
        super().__init__()

    def __str__(self):
        return str(dict(message=self.message, context=self.context))

    @property
    def user_msg(self):
        return self.message

    def update_context(self, **kwargs):
        self.context.update(dict(**kwargs))


class InvalidFormatException(BaseInjectorException):
    pass


class InvalidAdmissionReviewFormatError(InvalidFormatException):
    pass


class InvalidWorkloadFormatError(InvalidFormatException):
    pass


class InvalidConfigurationFormatError(InvalidFormatException):
    pass


class InvalidImageFormatError(InvalidFormatException):
    pass


class PathTraversalError(InvalidFormatException):
    pass


class NotFoundException(BaseInjectorException):
    pass


class UnknownTypeException(BaseInjectorException):
    pass


class UnknownAPIVersionError(UnknownTypeException):
    pass


class PatchCreationError(BaseInjectorException):
    pass
