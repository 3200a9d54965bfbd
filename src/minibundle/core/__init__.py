"""
Bundler core: hooks, loader chain, dependency graph, emitter and the driver.
"""

from minibundle.core.compiler import Compilation, Compiler
from minibundle.core.emitter import BundleEmitter
from minibundle.core.graph import GraphBuilder, ModuleRecord, ModuleTable, RequireRewriter
from minibundle.core.hooks import HookName, HookRegistry, SyncHook
from minibundle.core.loaders import LoaderChain, LoaderContext, apply_loaders

__all__ = [
  "BundleEmitter",
  "Compilation",
  "Compiler",
  "GraphBuilder",
  "HookName",
  "HookRegistry",
  "LoaderChain",
  "LoaderContext",
  "ModuleRecord",
  "ModuleTable",
  "RequireRewriter",
  "SyncHook",
  "apply_loaders",
]
