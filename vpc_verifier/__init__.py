# Copyright 2026 Cisco Systems, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""
VPC Verifier - Network control verification engine for cloud virtual networks.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vpc-verifier")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"


def __getattr__(name: str):
    """Lazy-load public API symbols on first access.

    Keeps ``import vpc_verifier`` cheap: boto3 and PyYAML are only imported
    when the engine, policy or AWS provider is actually used.
    """
    _lazy_map = {
        "Config": (".config.config", "Config"),
        "VerifierConstants": (".config.constants", "VerifierConstants"),
        "ControlVerdict": (".core.models", "ControlVerdict"),
        "NetworkReport": (".core.models", "NetworkReport"),
        "ResultClass": (".core.models", "ResultClass"),
        "Verdict": (".core.models", "Verdict"),
        "VerificationPolicy": (".core.policy", "VerificationPolicy"),
        "VerificationEngine": (".core.engine", "VerificationEngine"),
        "EngineBuilder": (".core.engine", "EngineBuilder"),
        "AllowListResolver": (".core.allowlist", "AllowListResolver"),
        "ControlPlaneInspector": (".core.inspector", "ControlPlaneInspector"),
        "BehavioralProbe": (".core.probe", "BehavioralProbe"),
        "TrialMatrixRunner": (".core.trial_matrix", "TrialMatrixRunner"),
        "load_trial_matrix": (".core.trial_matrix", "load_trial_matrix"),
    }
    if name in _lazy_map:
        module_path, attr = _lazy_map[name]
        import importlib

        mod = importlib.import_module(module_path, __package__)
        val = getattr(mod, attr)
        # Cache on the module so __getattr__ is only called once per symbol
        globals()[name] = val
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "VerificationEngine",
    "EngineBuilder",
    "ControlPlaneInspector",
    "BehavioralProbe",
    "AllowListResolver",
    "TrialMatrixRunner",
    "load_trial_matrix",
    "ControlVerdict",
    "NetworkReport",
    "Verdict",
    "ResultClass",
    "VerificationPolicy",
    "Config",
    "VerifierConstants",
]
