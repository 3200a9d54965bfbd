"""
Hook Registry.

Plugins extend a build by tapping callbacks onto a fixed set of named,
synchronous hooks. The set is closed: `HookName` enumerates every hook and
registering against anything else fails immediately with `UnknownHookError`.

.. code-block:: python

    class BannerPlugin:
      def apply(self, compiler):
        compiler.hooks.after_emit.tap("BannerPlugin", lambda compilation: print(compilation.output_path))

Taps run in registration order. The first tap that raises halts the
invocation; the failure surfaces as `HookInvocationError` chained to the
original exception.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from minibundle.errors import HookInvocationError, UnknownHookError

logger = logging.getLogger(__name__)

HookCallback = Callable[..., Any]


class HookName(str, Enum):
  """
  Lifecycle extension points, in the order the compiler could reach them.

  Only `COMPILER`, `AFTER_COMPILER`, `EMIT`, `AFTER_EMIT` and `DONE` are
  invoked by the compiler itself.
  """

  COMPILER = "compiler"
  AFTER_PLUGINS = "afterPlugins"
  BEFORE_RUN = "beforeRun"
  RUN = "run"
  MAKE = "make"
  AFTER_COMPILER = "afterCompiler"
  SHOULD_EMIT = "shouldEmit"
  EMIT = "emit"
  AFTER_EMIT = "afterEmit"
  DONE = "done"


# Declared call arguments per hook.
HOOK_ARGS: Dict[HookName, Tuple[str, ...]] = {name: () for name in HookName}
HOOK_ARGS[HookName.AFTER_EMIT] = ("compilation",)

# Attribute name on HookRegistry for each hook (hooks.after_emit, ...).
_ATTRIBUTE_NAMES: Dict[str, HookName] = {
  "compiler": HookName.COMPILER,
  "after_plugins": HookName.AFTER_PLUGINS,
  "before_run": HookName.BEFORE_RUN,
  "run": HookName.RUN,
  "make": HookName.MAKE,
  "after_compiler": HookName.AFTER_COMPILER,
  "should_emit": HookName.SHOULD_EMIT,
  "emit": HookName.EMIT,
  "after_emit": HookName.AFTER_EMIT,
  "done": HookName.DONE,
}


def parse_hook_name(name: Union[HookName, str]) -> HookName:
  """
  Converts a hook identifier to `HookName`.

  Accepts enum members, camelCase values (``"afterEmit"``) and the
  snake_case attribute names (``"after_emit"``).

  Raises:
      UnknownHookError: If `name` is not one of the fixed hooks.
  """
  if isinstance(name, HookName):
    return name
  if isinstance(name, str):
    try:
      return HookName(name)
    except ValueError:
      pass
    if name in _ATTRIBUTE_NAMES:
      return _ATTRIBUTE_NAMES[name]
  raise UnknownHookError(str(name))


class SyncHook:
  """
  An ordered list of callbacks invoked synchronously with fixed arguments.

  Attributes:
      name (str): Hook identifier, used in error messages.
      args (Tuple[str, ...]): Names of the positional arguments `call` expects.
  """

  def __init__(self, name: str, args: Sequence[str] = ()):
    self.name = name
    self.args = tuple(args)
    self._taps: List[Tuple[str, HookCallback]] = []

  def tap(self, tap_name: str, callback: HookCallback) -> None:
    """
    Appends a callback.

    Args:
        tap_name: Label identifying the caller (usually the plugin class name).
        callback: Invoked with the hook's declared arguments.
    """
    if not callable(callback):
      raise TypeError(f"Hook '{self.name}' callback must be callable, got {type(callback).__name__}")
    self._taps.append((tap_name, callback))

  @property
  def taps(self) -> List[Tuple[str, HookCallback]]:
    return list(self._taps)

  def call(self, *args: Any) -> None:
    """
    Invokes every tap in registration order.

    Raises:
        TypeError: If the number of arguments differs from the declaration.
        HookInvocationError: If a tap raises.
    """
    if len(args) != len(self.args):
      raise TypeError(f"Hook '{self.name}' expects {len(self.args)} argument(s) {self.args}, got {len(args)}")

    logger.debug("Invoking hook %s (%d taps)", self.name, len(self._taps))
    for tap_name, callback in list(self._taps):
      try:
        callback(*args)
      except Exception as e:
        raise HookInvocationError(self.name, tap_name) from e

  def __len__(self) -> int:
    return len(self._taps)

  def __repr__(self) -> str:
    return f"SyncHook({self.name!r}, args={self.args!r}, taps={len(self._taps)})"


class HookRegistry:
  """
  The fixed set of lifecycle hooks owned by one compiler instance.

  Each hook is reachable as an attribute (``hooks.emit``), by item
  (``hooks["afterEmit"]``) or through `register` / `invoke`.
  """

  def __init__(self) -> None:
    self._hooks: Dict[HookName, SyncHook] = {name: SyncHook(name.value, HOOK_ARGS[name]) for name in HookName}

  def __getitem__(self, name: Union[HookName, str]) -> SyncHook:
    return self._hooks[parse_hook_name(name)]

  def __getattr__(self, attr: str) -> SyncHook:
    hook = _ATTRIBUTE_NAMES.get(attr)
    if hook is None or "_hooks" not in self.__dict__:
      raise AttributeError(attr)
    return self._hooks[hook]

  def register(self, name: Union[HookName, str], callback: HookCallback, tap_name: Optional[str] = None) -> None:
    """
    Appends `callback` to the named hook.

    Args:
        name: A `HookName` or its string value.
        callback: The function to call when the hook fires.
        tap_name: Optional label; defaults to the callback's qualified name.

    Raises:
        UnknownHookError: If `name` is not a recognized hook.
    """
    hook = self[name]
    label = tap_name or getattr(callback, "__qualname__", repr(callback))
    hook.tap(label, callback)

  def invoke(self, name: Union[HookName, str], *args: Any) -> None:
    """Calls every callback registered on `name`, in order."""
    self[name].call(*args)

  def taps(self, name: Union[HookName, str]) -> List[Tuple[str, HookCallback]]:
    return self[name].taps

  def __iter__(self):
    return iter(self._hooks.values())
