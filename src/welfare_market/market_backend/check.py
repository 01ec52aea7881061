def keep_details(fn):
    def wrapper(inner):
        inner.__name__ = fn.__name__
        inner.__doc__ = fn.__doc__
        return inner

    return wrapper


def periods_set(func):
    @keep_details(func)
    def wrapper(*args, **kwargs):
        if args[0]._periods is None:
            raise ModelBuildError('Representative periods must be set before the market can be dispatched.')
        return func(*args, **kwargs)

    return wrapper


def scale_not_negative(func):
    @keep_details(func)
    def wrapper(*args, **kwargs):
        for scale in list(args[1:]) + list(kwargs.values()):
            if scale is None or not 0.0 <= scale < float('inf'):
                raise ModelBuildError(
                    'Renewable capacity scales must be finite non negative numbers, got {}.'.format(scale))
        return func(*args, **kwargs)

    return wrapper


class ModelBuildError(Exception):
    """Raise for building model components in wrong order."""
