"""
Plotly rendering of a ``RenderScene``: Earth, starfield, asteroid bodies and trails.

Placement works in a y-up frame (the band height is ``y``). Plotly scenes are
z-up, so every point is drawn as ``(x, z, y)``.
"""
import math
from dataclasses import dataclass

import numpy as np
import plotly.graph_objects as go

from placement import EARTH_RADIUS, load_template

AXIAL_TILT_DEG = -23.4
SUN_DIRECTION = (-2.0, 0.5, 1.5)
STAR_COUNT = 3000
SCENE_EXTENT = 80.0
SPIN_FRAMES = 36
CLOUD_SPIN_RATIO = 1.2


def to_plot(points):
    """Swap a y-up (N, 3) array into Plotly's z-up axes."""
    points = np.atleast_2d(np.asarray(points, dtype=float))
    return points[:, 0], points[:, 2], points[:, 1]


def format_popup(record):
    """Display strings shown when an asteroid is selected or hovered."""
    return {
        "name": record.name,
        "distance": f"{record.distance_ld:.3f} LD",
        "diameter": f"{record.diameter_m:.0f} m",
        "speed": f"{record.velocity_km_s:.2f} km/s",
        "date": record.close_approach_date.split(".")[0],
    }


def popup_html(record):
    info = format_popup(record)
    return (
        f"<b>{info['name']}</b><br>"
        f"Distance: {info['distance']}<br>"
        f"Diameter: {info['diameter']}<br>"
        f"Speed: {info['speed']}<br>"
        f"Close-Approach Date: {info['date']}"
    )


def entry_key(record):
    """Selection key; one object can pass more than once in a window."""
    return (record.name, record.close_approach_date)


def entry_label(record):
    return f"{record.name} ({record.close_approach_date})"


@dataclass
class UiState:
    """Selection shown in the detail panel; lives next to the placement session."""
    selected_key: tuple = None

    def select(self, key):
        self.selected_key = tuple(key) if key else None

    def selected_entry(self, tracked):
        """The selected tracked entry, or None once it is hidden or gone."""
        if self.selected_key is None:
            return None
        for entry in tracked:
            if entry_key(entry.record) == self.selected_key and entry.body.visible:
                return entry
        return None


def _rotation_y(theta):
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]])


def _rotation_z(theta):
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]])


def sphere_grid(radius=EARTH_RADIUS, resolution=50, spin=0.0, tilt_deg=AXIAL_TILT_DEG):
    """Sphere mesh spun about its own axis, then tilted; returns Plotly-ordered x, y, z grids."""
    u = np.linspace(0, 2 * np.pi, resolution)
    v = np.linspace(0, np.pi, resolution)
    u, v = np.meshgrid(u, v)

    local = np.stack([
        radius * np.sin(v) * np.cos(u),
        radius * np.cos(v),
        radius * np.sin(v) * np.sin(u),
    ], axis=-1)

    rot = _rotation_z(math.radians(tilt_deg)) @ _rotation_y(spin)
    world = local @ rot.T
    return world[..., 0], world[..., 2], world[..., 1]


def earth_texture(resolution=50):
    """Procedural land/ocean height field on the (u, v) grid."""
    u = np.linspace(0, 2 * np.pi, resolution)
    v = np.linspace(0, np.pi, resolution)
    u, v = np.meshgrid(u, v)
    return 0.02 * np.sin(3 * u) * np.cos(2 * v) + 0.01 * np.sin(7 * u) * np.cos(5 * v)


def cloud_texture(resolution=50):
    u = np.linspace(0, 2 * np.pi, resolution)
    v = np.linspace(0, np.pi, resolution)
    u, v = np.meshgrid(u, v)
    return np.clip(np.sin(5 * u + 2 * v) * np.sin(4 * v) + 0.3 * np.cos(11 * u), 0, 1)


def _sun_light():
    x, y, z = to_plot(np.array(SUN_DIRECTION) * 1e4)
    return dict(x=float(x[0]), y=float(y[0]), z=float(z[0]))


def earth_traces(spin=0.0):
    """Earth surface, cloud shell and atmosphere glow at a given spin angle."""
    ex, ey, ez = sphere_grid(spin=spin)
    cx, cy, cz = sphere_grid(radius=1.005 * EARTH_RADIUS, spin=spin * CLOUD_SPIN_RATIO)
    gx, gy, gz = sphere_grid(radius=1.03 * EARTH_RADIUS, resolution=30)

    earth = go.Surface(
        x=ex, y=ey, z=ez,
        surfacecolor=earth_texture(),
        colorscale=[[0, '#123a7a'], [0.45, '#4169E1'], [0.55, '#228B22'], [1, '#8B4513']],
        showscale=False,
        lighting=dict(ambient=0.25, diffuse=0.9, specular=0.2, roughness=0.8),
        lightposition=_sun_light(),
        name='Earth',
        hovertemplate='<b>🌍 Earth</b><extra></extra>',
    )
    clouds = go.Surface(
        x=cx, y=cy, z=cz,
        surfacecolor=cloud_texture(),
        colorscale=[[0, 'white'], [1, 'white']],
        opacityscale=[[0, 0], [0.5, 0], [1, 0.6]],
        showscale=False,
        lighting=dict(ambient=0.3, diffuse=0.8),
        lightposition=_sun_light(),
        name='Clouds',
        hoverinfo='skip',
    )
    glow = go.Surface(
        x=gx, y=gy, z=gz,
        colorscale=[[0, '#6fa8ff'], [1, '#6fa8ff']],
        opacity=0.12,
        showscale=False,
        name='Atmosphere',
        hoverinfo='skip',
    )
    return [earth, clouds, glow]


def starfield_trace(num_stars=STAR_COUNT, seed=7):
    """Stars scattered on a thin shell just inside the scene bounds."""
    rng = np.random.default_rng(seed)
    radius = rng.uniform(0.92 * SCENE_EXTENT, SCENE_EXTENT, num_stars)
    theta = rng.uniform(0, 2 * np.pi, num_stars)
    phi = np.arccos(rng.uniform(-1, 1, num_stars))
    hue = rng.uniform(0.55, 1.0, num_stars)

    return go.Scatter3d(
        x=radius * np.sin(phi) * np.cos(theta),
        y=radius * np.sin(phi) * np.sin(theta),
        z=radius * np.cos(phi),
        mode='markers',
        marker=dict(
            size=1.5,
            color=[f'rgba({int(255 * h)}, {int(255 * h)}, 255, 0.9)' for h in hue],
            line=dict(width=0),
        ),
        name='Stars',
        showlegend=False,
        hoverinfo='skip',
    )


def bodies_trace(bodies, template=None):
    """One marker per visible body in the render scene, hover text is the popup."""
    template = template or load_template()
    visible = [body for body in bodies if body.visible]
    if visible:
        xs, ys, zs = to_plot([body.position for body in visible])
    else:
        xs = ys = zs = []

    return go.Scatter3d(
        x=xs, y=ys, z=zs,
        mode='markers',
        marker=dict(
            size=[max(template.min_size, body.scale * template.size_per_scale) for body in visible],
            color=template.color,
            symbol=template.symbol,
            opacity=0.9,
            line=dict(width=0),
        ),
        text=[popup_html(body.record) for body in visible],
        customdata=[body.record.name for body in visible],
        hovertemplate='%{text}<extra></extra>',
        name='Asteroids',
    )


def trails_trace(trails, template=None):
    """All visible trails as one line trace, broken apart with None gaps."""
    template = template or load_template()
    xs, ys, zs = [], [], []
    for trail in trails:
        if not trail.visible:
            continue
        tx, ty, tz = to_plot(trail.points)
        xs.extend(tx.tolist() + [None])
        ys.extend(ty.tolist() + [None])
        zs.extend(tz.tolist() + [None])

    return go.Scatter3d(
        x=xs, y=ys, z=zs,
        mode='lines',
        line=dict(color=template.trail_color, width=2),
        opacity=template.trail_opacity,
        name='Trails',
        showlegend=False,
        hoverinfo='skip',
    )


def selection_trace(entry):
    x, y, z = to_plot(entry.body.position)
    return go.Scatter3d(
        x=x, y=y, z=z,
        mode='markers',
        marker=dict(size=14, color='rgba(0,0,0,0)', line=dict(color='#ff4444', width=3)),
        name=f'Selected: {entry.record.name}',
        hoverinfo='skip',
    )


def spin_frames(num_frames=SPIN_FRAMES):
    """Animation frames that rotate only the Earth and cloud traces (indices 0, 1)."""
    frames = []
    for i in range(num_frames):
        spin = 2 * np.pi * i / num_frames
        earth, clouds, _ = earth_traces(spin)
        frames.append(go.Frame(data=[earth, clouds], traces=[0, 1], name=str(i)))
    return frames


def build_figure(session, ui_state=None, animate=True):
    """Full 3D figure for the current placement session."""
    fig = go.Figure()
    for trace in earth_traces():
        fig.add_trace(trace)
    fig.add_trace(starfield_trace())
    fig.add_trace(trails_trace(session.scene.trails()))
    fig.add_trace(bodies_trace(session.scene.bodies()))

    selected = ui_state.selected_entry(session.tracked) if ui_state else None
    if selected is not None:
        fig.add_trace(selection_trace(selected))

    axis = dict(
        range=[-SCENE_EXTENT, SCENE_EXTENT],
        visible=False,
        showbackground=False,
    )
    fig.update_layout(
        scene=dict(
            xaxis=axis,
            yaxis=axis,
            zaxis=axis,
            aspectmode='cube',
            bgcolor='rgba(0, 0, 0, 1)',
            camera=dict(eye=dict(x=0.0, y=0.04, z=0.0), up=dict(x=0, y=0, z=1)),
        ),
        paper_bgcolor='#0a0a0a',
        font=dict(color='white', family='Arial'),
        height=720,
        margin=dict(l=0, r=0, t=10, b=0),
        legend=dict(bgcolor='rgba(0, 0, 0, 0.6)', font=dict(color='white')),
    )

    if animate:
        fig.frames = spin_frames()
        fig.update_layout(updatemenus=[dict(
            type='buttons',
            showactive=False,
            x=0.02, y=0.02,
            buttons=[
                dict(label='▶ Rotate', method='animate',
                     args=[None, dict(frame=dict(duration=80, redraw=True), fromcurrent=True)]),
                dict(label='⏸', method='animate',
                     args=[[None], dict(frame=dict(duration=0, redraw=False), mode='immediate')]),
            ],
        )])
    return fig
