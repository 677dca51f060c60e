"""Materialises the Android project skeleton from the xwalk app template."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping
import re
import shutil
import textwrap

from .app import LOCAL_ASSET_PREFIX


_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")

DEFAULT_ICON = "crosswalk"
MIN_SDK_VERSION = 14

THEME = "@android:style/Theme.Holo.Light.NoActionBar"
FULLSCREEN_THEME = "@android:style/Theme.Holo.Light.NoActionBar.Fullscreen"

MANIFEST_TEMPLATE = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="utf-8"?>
    <manifest xmlns:android="http://schemas.android.com/apk/res/android"
        package="{{pkg}}"
        android:versionCode="{{version_code}}"
        android:versionName="{{version}}">
        <uses-sdk android:minSdkVersion="{{min_sdk}}" android:targetSdkVersion="{{api_level}}" />
        <application android:name="org.xwalk.app.runtime.XWalkRuntimeApplication"
            android:hardwareAccelerated="true"
            android:icon="@drawable/{{icon}}"
            android:label="@string/app_name">
            <activity android:name=".{{activity}}"
                android:configChanges="orientation|keyboardHidden|keyboard|screenSize"
                android:label="@string/app_name"
                android:launchMode="singleTop"
                android:screenOrientation="{{orientation}}"
                android:theme="{{theme}}">
                <intent-filter>
                    <action android:name="android.intent.action.MAIN" />
                    <category android:name="android.intent.category.LAUNCHER" />
                </intent-filter>
            </activity>
        </application>
        <uses-permission android:name="android.permission.ACCESS_NETWORK_STATE" />
        <uses-permission android:name="android.permission.ACCESS_WIFI_STATE" />
        <uses-permission android:name="android.permission.INTERNET" />
    </manifest>
    """
)

STRINGS_TEMPLATE = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="utf-8"?>
    <resources>
        <string name="app_name">{{label}}</string>
    </resources>
    """
)

ACTIVITY_TEMPLATE = textwrap.dedent(
    """\
    package {{pkg}};

    import android.os.Bundle;

    import org.xwalk.app.XWalkRuntimeActivityBase;
    import org.xwalk.core.XWalkPreferences;

    public class {{activity}} extends XWalkRuntimeActivityBase {
        @Override
        public void onCreate(Bundle savedInstanceState) {
            XWalkPreferences.setValue(XWalkPreferences.REMOTE_DEBUGGING, {{remote_debugging}});
            super.onCreate(savedInstanceState);
        }

        @Override
        protected void didTryLoadRuntimeView(android.view.View runtimeView) {
            if (runtimeView != null) {
                getRuntimeView().loadAppFromUrl("{{entry_url}}");
            }
        }
    }
    """
)


class SkeletonError(RuntimeError):
    """Raised when the project skeleton cannot be generated."""


def render(template: str, context: Mapping[str, Any]) -> str:
    def replacement(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        if key not in context:
            raise SkeletonError(f"Unknown template placeholder '{key}'")
        return str(context[key])

    return _PLACEHOLDER_PATTERN.sub(replacement, template)


def version_code(version: str) -> int:
    """Derive a monotonically increasing integer from a dotted version."""

    parts = [int(part) for part in re.findall(r"\d+", version)[:3]]
    while len(parts) < 3:
        parts.append(0)
    major, minor, patch = parts
    return max(1, major * 10000 + minor * 100 + patch)


def _xml_escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _entry_url(options: Mapping[str, Any]) -> str:
    if options.get("appUrl"):
        return str(options["appUrl"])
    local_path = options.get("appLocalPath")
    if not local_path:
        raise SkeletonError("Either appLocalPath or appUrl is required")
    return LOCAL_ASSET_PREFIX + Path(str(local_path)).as_posix()


def skeleton_context(options: Mapping[str, Any]) -> Dict[str, Any]:
    for key in ("name", "pkg", "version"):
        if not options.get(key):
            raise SkeletonError(f"Skeleton option '{key}' is required")
    name = str(options["name"])
    icon = options.get("icon")
    return {
        "name": name,
        "label": _xml_escape(name),
        "pkg": str(options["pkg"]),
        "version": _xml_escape(str(options["version"])),
        "version_code": version_code(str(options["version"])),
        "min_sdk": MIN_SDK_VERSION,
        "api_level": options.get("androidAPILevel") or MIN_SDK_VERSION,
        "icon": "icon" if icon else DEFAULT_ICON,
        "activity": f"{name}Activity",
        "orientation": options.get("orientation") or "unspecified",
        "theme": FULLSCREEN_THEME if options.get("fullscreen") else THEME,
        "remote_debugging": "true" if options.get("remoteDebugging") else "false",
        "entry_url": _entry_url(options).replace("\\", "\\\\").replace('"', '\\"'),
    }


def generate_skeleton(options: Mapping[str, Any], destination: Path, *, template_dir: Path) -> None:
    """Copy the app template into ``destination`` and render the project files.

    ``options`` carries ``name``, ``pkg``, ``version``, ``icon``,
    ``orientation``, ``fullscreen``, ``appRoot``, ``appLocalPath`` or
    ``appUrl``, ``remoteDebugging`` and ``androidAPILevel``.
    """

    context = skeleton_context(options)
    try:
        shutil.copytree(
            template_dir,
            destination,
            ignore=shutil.ignore_patterns("native_libs", "*.keystore"),
            dirs_exist_ok=True,
        )

        (destination / "AndroidManifest.xml").write_text(render(MANIFEST_TEMPLATE, context), encoding="utf-8")

        values_dir = destination / "res" / "values"
        values_dir.mkdir(parents=True, exist_ok=True)
        (values_dir / "strings.xml").write_text(render(STRINGS_TEMPLATE, context), encoding="utf-8")

        activity_dir = destination / "src" / context["pkg"].replace(".", "/")
        activity_dir.mkdir(parents=True, exist_ok=True)
        (activity_dir / f"{context['activity']}.java").write_text(
            render(ACTIVITY_TEMPLATE, context), encoding="utf-8"
        )

        icon = options.get("icon")
        if icon:
            icon_path = Path(str(icon))
            drawable_dir = destination / "res" / "drawable"
            drawable_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(icon_path, drawable_dir / f"icon{icon_path.suffix or '.png'}")
    except (OSError, shutil.Error) as exc:
        raise SkeletonError(f"Could not generate project skeleton in '{destination}': {exc}") from exc


__all__ = [
    "ACTIVITY_TEMPLATE",
    "MANIFEST_TEMPLATE",
    "STRINGS_TEMPLATE",
    "SkeletonError",
    "generate_skeleton",
    "render",
    "skeleton_context",
    "version_code",
]
