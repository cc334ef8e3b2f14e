#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════╗
║           PIXEL MORPH  ·  Transform Your Art         ║
║   Draw · Pause · Watch your marks become the image   ║
╚══════════════════════════════════════════════════════╝

Controls:
  Left-drag      Draw particles on the canvas
  C              Clear canvas
  D              Save PNG
  U              Upload a target image
  H              Show / hide help
  Escape         Close help
  Ctrl+S         Save settings
  Ctrl+O         Load settings

Environment:
  PIXELMORPH_IMAGE   target image to load at start-up
  PIXELMORPH_SEED    seed for a reproducible session
"""

import logging
import math
import os
import random
import sys
import time
from colorsys import hsv_to_rgb, rgb_to_hsv

import colornames
import pygame
import pygame.gfxdraw

from morph import MorphSimulation, PhaseScheduler, MORPH_DELAY_MS, DEFAULT_DENSITY
from targets import DEFAULT_STRIDE, demo_raster

logger = logging.getLogger("pixelmorph")

pygame.init()
pygame.font.init()

# ── Window ─────────────────────────────────────────────────────────────────────
CANVAS_W, CANVAS_H = 600, 450
PANEL_W       = 300
STATUS_H      = 150
WIN_W         = CANVAS_W + PANEL_W
WIN_H         = CANVAS_H + STATUS_H
FPS           = 60

# ── Drawing ────────────────────────────────────────────────────────────────────
DEFAULT_BRUSH = (255, 94, 98)
TRAIL_ALPHA   = 38            # ~15% background per frame
PRESETS = [
    (255,  94,  98), (255, 195,  77), (250, 240, 200),
    ( 90, 200, 120), ( 70, 160, 255), (150,  90, 240),
    ( 20,  20,  30), (128, 128, 140), (255, 255, 255),
]

# ── Colour palette ─────────────────────────────────────────────────────────────
BG       = ( 13,  13,  18)
PNL      = ( 18,  18,  28)
PNL_DK   = ( 10,  10,  16)
BDR      = ( 48,  48,  72)
TXT      = (220, 220, 235)
DIM      = (120, 120, 150)
ACC      = (120,  90, 255)
BTN_N    = ( 32,  32,  52)
BTN_H    = ( 52,  52,  82)
DNG      = (160,  45,  45)
DNG_H    = (205,  70,  70)
SUC      = ( 40, 148,  75)
SUC_H    = ( 60, 185,  95)
SLB      = ( 30,  30,  48)
SLF      = (110,  80, 235)
BAR      = ( 80, 200, 140)

# ── Fonts ──────────────────────────────────────────────────────────────────────
FSM = pygame.font.SysFont("Segoe UI, Arial, sans-serif", 12)
FMD = pygame.font.SysFont("Segoe UI, Arial, sans-serif", 14)
FLG = pygame.font.SysFont("Segoe UI, Arial, sans-serif", 16, bold=True)
FXL = pygame.font.SysFont("Segoe UI, Arial, sans-serif", 20, bold=True)

PAD = 8
CR  = 5

HELP_LINES = [
    "Draw on the canvas with the left mouse button.",
    "Stop drawing and wait 3 seconds: every mark flies",
    "to a pixel of the target image and takes its place.",
    "Draw more to add detail; better-matching colors",
    "replace weaker ones.",
    "",
    "C clear   D save PNG   U upload image   H help",
    "Ctrl+S / Ctrl+O  save / load settings",
]


# ═══════════════════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def rrect(surf, col, rect, r=CR, bw=0, bc=None):
    pygame.draw.rect(surf, col, rect, border_radius=r)
    if bw:
        pygame.draw.rect(surf, bc or BDR, rect, bw, border_radius=r)


def txt(surf, s, x, y, font=FMD, col=TXT, anchor="topleft"):
    img = font.render(str(s), True, col)
    rct = img.get_rect(**{anchor: (x, y)})
    surf.blit(img, rct)
    return rct


def hsv2rgb(h, s, v):
    r, g, b = hsv_to_rgb(h, s, v)
    return int(r * 255), int(g * 255), int(b * 255)


def rgb2hsv(c):
    return rgb_to_hsv(c[0] / 255, c[1] / 255, c[2] / 255)


def clamp(x, lo, hi):
    return max(lo, min(hi, x))


def resolution_label(stride):
    if stride <= 2:
        return "Ultra (slow)"
    if stride <= 4:
        return "High"
    if stride <= 8:
        return "Medium"
    if stride <= 14:
        return "Low"
    return "Draft"


def file_dialog(save=False, **options):
    """Native open/save dialog via tkinter; None if cancelled or unavailable."""
    try:
        import tkinter as tk
        from tkinter import filedialog
    except ImportError:
        return None
    root = tk.Tk()
    root.withdraw()
    if save:
        path = filedialog.asksaveasfilename(**options)
    else:
        path = filedialog.askopenfilename(**options)
    root.destroy()
    return path or None


def paint_particles(surf, parts):
    """One size x size rectangle per particle; translucent ones are blended."""
    fill = surf.fill
    box  = pygame.gfxdraw.box
    for p in parts:
        r, g, b = p.rgb
        a = p.alpha
        rect = (int(p.x), int(p.y), p.size, p.size)
        if a >= 1.0:
            fill((r, g, b), rect)
        else:
            box(surf, rect, (r, g, b, int(a * 255)))


# ═══════════════════════════════════════════════════════════════════════════════
#  UI COMPONENTS
# ═══════════════════════════════════════════════════════════════════════════════

class UIButton:
    def __init__(self, label, rect, nc=None, hc=None, font=FMD):
        self.label = label
        self.rect  = pygame.Rect(rect)
        self.nc    = nc or BTN_N
        self.hc    = hc or BTN_H
        self.font  = font
        self._hov  = False

    def draw(self, surf):
        c = self.hc if self._hov else self.nc
        rrect(surf, c, self.rect, bw=1)
        s = self.font.render(self.label, True, TXT)
        surf.blit(s, s.get_rect(center=self.rect.center))

    def update(self, mpos):
        self._hov = self.rect.collidepoint(mpos)

    def clicked(self, mpos):
        return self.rect.collidepoint(mpos)


class UISlider:
    def __init__(self, label, x, y, w, lo, hi, val, fmt="{:.2f}", integ=False):
        self.label = label
        self.x, self.y, self.w = x, y, w
        self.lo, self.hi = lo, hi
        self.val   = val
        self.fmt   = fmt
        self.integ = integ
        self._drag = False
        self.H     = 12

    @property
    def track(self):
        return pygame.Rect(self.x, self.y + 16, self.w, self.H)

    def draw(self, surf):
        txt(surf, self.label, self.x, self.y, FSM, DIM)
        txt(surf, self.fmt.format(self.val), self.x + self.w, self.y, FSM, TXT, "topright")
        tr = self.track
        rrect(surf, SLB, tr, 4)
        t  = (self.val - self.lo) / (self.hi - self.lo)
        fw = max(self.H, int(t * self.w))
        rrect(surf, SLF, pygame.Rect(tr.x, tr.y, fw, tr.h), 4)
        cx = tr.x + int(t * self.w)
        pygame.draw.circle(surf, TXT, (cx, tr.centery), 8)
        pygame.draw.circle(surf, ACC, (cx, tr.centery), 6)

    def _set_from(self, px):
        t = clamp((px - self.x) / self.w, 0.0, 1.0)
        v = self.lo + t * (self.hi - self.lo)
        self.val = round(v) if self.integ else v

    def handle(self, ev):
        if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1:
            if self.track.inflate(20, 20).collidepoint(ev.pos):
                self._drag = True
                self._set_from(ev.pos[0])
                return True
        if ev.type == pygame.MOUSEBUTTONUP and ev.button == 1:
            self._drag = False
        if ev.type == pygame.MOUSEMOTION and self._drag:
            self._set_from(ev.pos[0])
            return True
        return False

    @property
    def height(self):
        return 16 + self.H + 4


class UIToggle:
    """Checkbox with a label; hidden toggles ignore clicks."""

    def __init__(self, label, x, y, w, on=False):
        self.label   = label
        self.rect    = pygame.Rect(x, y, w, 22)
        self.on      = on
        self.visible = True

    def draw(self, surf):
        if not self.visible:
            return
        box = pygame.Rect(self.rect.x, self.rect.y + 3, 16, 16)
        rrect(surf, ACC if self.on else PNL_DK, box, r=3, bw=1)
        if self.on:
            pygame.draw.lines(surf, TXT, False,
                              [(box.x + 3, box.centery), (box.x + 7, box.bottom - 4),
                               (box.right - 3, box.y + 3)], 2)
        txt(surf, self.label, box.right + 8, box.centery, FMD, TXT, "midleft")

    def clicked(self, mpos):
        return self.visible and self.rect.collidepoint(mpos)


class ColorPicker:
    """Compact SV square + hue bar color picker."""

    def __init__(self, x, y, size=150):
        self.x, self.y, self.sz = x, y, size
        self.hsv  = (0.0, 1.0, 0.85)
        self._sv  = None
        self._hue = None
        self._dirty = True
        self._dsv   = False
        self._dhue  = False
        self.HUE_H  = 16
        self.GAP    = 6

    @property
    def sv_rect(self):
        return pygame.Rect(self.x, self.y, self.sz, self.sz)

    @property
    def hue_rect(self):
        return pygame.Rect(self.x, self.y + self.sz + self.GAP, self.sz, self.HUE_H)

    @property
    def total_h(self):
        return self.sz + self.GAP + self.HUE_H

    @property
    def color(self):
        return hsv2rgb(*self.hsv)

    @color.setter
    def color(self, rgb):
        self.hsv    = rgb2hsv(rgb)
        self._dirty = True

    def _build(self):
        sz  = self.sz
        sv  = pygame.Surface((sz, sz))
        h   = self.hsv[0]
        for xi in range(sz):
            sat = xi / max(sz - 1, 1)
            for yi in range(sz):
                val = 1.0 - yi / max(sz - 1, 1)
                sv.set_at((xi, yi), hsv2rgb(h, sat, val))
        self._sv = sv

        hw  = self.sz
        hh  = self.HUE_H
        hs  = pygame.Surface((hw, hh))
        for xi in range(hw):
            c = hsv2rgb(xi / max(hw - 1, 1), 1.0, 1.0)
            pygame.draw.line(hs, c, (xi, 0), (xi, hh - 1))
        self._hue   = hs
        self._dirty = False

    def draw(self, surf):
        if self._dirty or self._sv is None:
            self._build()
        surf.blit(self._sv, (self.x, self.y))
        pygame.draw.rect(surf, BDR, self.sv_rect, 1)
        surf.blit(self._hue, self.hue_rect.topleft)
        pygame.draw.rect(surf, BDR, self.hue_rect, 1)
        # SV cursor
        sx = int(self.hsv[1] * self.sz) + self.x
        sy = int((1.0 - self.hsv[2]) * self.sz) + self.y
        pygame.draw.circle(surf, (0, 0, 0), (sx, sy), 6, 2)
        pygame.draw.circle(surf, (255, 255, 255), (sx, sy), 5, 2)
        # Hue cursor
        hx = int(self.hsv[0] * self.sz) + self.x
        hy = self.hue_rect.centery
        pygame.draw.circle(surf, (0, 0, 0), (hx, hy), 7, 2)
        pygame.draw.circle(surf, (255, 255, 255), (hx, hy), 6, 2)

    def handle(self, ev):
        if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1:
            self._dsv  = self.sv_rect.collidepoint(ev.pos)
            self._dhue = not self._dsv and self.hue_rect.collidepoint(ev.pos)
        if ev.type == pygame.MOUSEBUTTONUP and ev.button == 1:
            self._dsv = self._dhue = False
        if ev.type in (pygame.MOUSEMOTION, pygame.MOUSEBUTTONDOWN):
            if self._dsv:
                sat = clamp((ev.pos[0] - self.x) / self.sz, 0.0, 1.0)
                val = 1.0 - clamp((ev.pos[1] - self.y) / self.sz, 0.0, 1.0)
                self.hsv = (self.hsv[0], sat, val)
                return True
            if self._dhue:
                h = clamp((ev.pos[0] - self.x) / self.sz, 0.0, 1.0)
                self.hsv    = (h, self.hsv[1], self.hsv[2])
                self._dirty = True
                return True
        return False


# ═══════════════════════════════════════════════════════════════════════════════
#  MAIN APPLICATION
# ═══════════════════════════════════════════════════════════════════════════════

class App:
    def __init__(self, seed=None, image=None):
        self.screen  = pygame.display.set_mode((WIN_W, WIN_H))
        pygame.display.set_caption("Pixel Morph")
        self.clock   = pygame.time.Clock()

        self.canvas  = pygame.Surface((CANVAS_W, CANVAS_H))
        self.canvas.fill(BG)
        self.canvas_rect = self.canvas.get_rect()
        self._fade   = pygame.Surface((CANVAS_W, CANVAS_H))
        self._fade.fill(BG)
        self._fade.set_alpha(TRAIL_ALPHA)

        self.sim     = MorphSimulation(CANVAS_W, CANVAS_H, seed=seed)
        self.phase   = PhaseScheduler(MORPH_DELAY_MS)
        self.stats   = self.sim.stats()

        self.running   = False
        self.drawing   = False
        self.show_help = False
        self.status    = "Ready to draw"
        self._flash    = None      # (message, until_ms)

        # ── Panel widgets ─────────────────────────────────────────────────────
        px = CANVAS_W + PAD
        pw = PANEL_W - PAD * 2
        y  = 56 + 22
        self.picker = ColorPicker(px, y, 150)
        self.picker.color = DEFAULT_BRUSH
        self._preset_rects = []
        for i, col in enumerate(PRESETS):
            r = pygame.Rect(px + 164 + (i % 3) * 38, y + (i // 3) * 38, 32, 32)
            self._preset_rects.append((r, col))
        y += self.picker.total_h + 34

        self.s_density = UISlider("Brush density", px, y, pw, 1, 50, DEFAULT_DENSITY,
                                  "{:.0f} particles/stroke", integ=True)
        y += self.s_density.height + 10
        self.s_res     = UISlider("Resolution", px, y, pw, 1, 20, DEFAULT_STRIDE,
                                  "{:.0f}px", integ=True)
        y += self.s_res.height + 14

        self.t_random = UIToggle("Random pixels", px, y, pw)
        self.t_cycle  = UIToggle("Cycle color",   px, y + 24, pw)
        self.t_favor  = UIToggle("Favor original colors", px, y + 48, pw)
        self.t_trails = UIToggle("Motion trails", px, y + 72, pw)
        y += 104

        bw = (pw - PAD * 2) // 3
        self.btn_upload = UIButton("Upload", (px, y, bw, 30))
        self.btn_save   = UIButton("Save PNG", (px + bw + PAD, y, bw, 30), nc=SUC, hc=SUC_H)
        self.btn_clear  = UIButton("Clear", (px + (bw + PAD) * 2, y, bw, 30), nc=DNG, hc=DNG_H)
        self._buttons   = [self.btn_upload, self.btn_save, self.btn_clear]

        self._load_initial_image(image)
        self._sync_controls()

    def _load_initial_image(self, path):
        if path and self.sim.load_image(path):
            return
        self.sim.set_raster(demo_raster(CANVAS_W, CANVAS_H))

    # ──────────────────────────────────────────────────────────────────────────
    #  STATE
    # ──────────────────────────────────────────────────────────────────────────

    def _sync_controls(self):
        """Push toggle/slider state into the simulation."""
        self.t_favor.visible = self.t_random.on or self.t_cycle.on
        if not self.t_favor.visible:
            self.t_favor.on = False
        self.sim.random_pixels = self.t_random.on
        self.sim.assigner.favor_colors = self.t_favor.on
        self.sim.density = int(self.s_density.val)
        self.s_res.label = f"Resolution · {resolution_label(self.s_res.val)}"

    def _flash_msg(self, msg, ms=2000):
        self._flash = (msg, pygame.time.get_ticks() + ms)

    def _refresh_stats(self):
        self.stats = self.sim.stats()
        if self.stats.total and self.stats.percent == 100:
            self.status = "Complete!"

    def _start_drawing(self, pos):
        self.drawing = True
        self.sim.pause_morph()
        self.phase.cancel()
        self.status = "Drawing..."
        self._draw_at(pos)

    def _draw_at(self, pos):
        color = self.picker.color + (1.0,)
        self.sim.stroke(pos[0], pos[1], color, int(self.s_density.val))
        self._refresh_stats()
        if self.drawing:
            self.status = "Drawing..."

    def _stop_drawing(self):
        self.drawing = False
        self.phase.arm(pygame.time.get_ticks())
        self.status = "Morphing in..."
        if self.t_cycle.on:
            rgb = (random.randrange(256), random.randrange(256), random.randrange(256))
            self.picker.color = rgb
            logger.info(f"brush color: {colornames.find(*rgb)}")

    def clear(self):
        self.sim.clear()
        self.phase.cancel()
        self.drawing = False
        self.canvas.fill(BG)
        self._refresh_stats()
        self.status = "Ready to draw"

    # ── Files ─────────────────────────────────────────────────────────────────
    def upload_image(self):
        path = file_dialog(filetypes=[("Images", "*.png *.jpg *.jpeg *.bmp *.gif *.webp"),
                                      ("All files", "*.*")])
        if not path:
            return
        if self.sim.load_image(path):
            self._flash_msg(f"Target: {os.path.basename(path)}")
        else:
            self._flash_msg("Could not load that image")

    def save_png(self):
        if not self.sim.parts:
            self._flash_msg("Draw something first!")
            return
        path = file_dialog(save=True, defaultextension=".png",
                           initialfile=f"pixel-morph-{int(time.time() * 1000)}.png",
                           filetypes=[("PNG image", "*.png")])
        if not path:
            return
        # render without trails on a clean background
        out = pygame.Surface((CANVAS_W, CANVAS_H))
        out.fill(BG)
        paint_particles(out, self.sim.parts)
        try:
            pygame.image.save(out, path)
        except (pygame.error, OSError) as e:
            logger.warning(f"save failed: {e}")
            self._flash_msg("Save failed")
            return
        logger.info(f"Saved {path}")

    def save_settings(self):
        path = file_dialog(save=True, defaultextension=".json",
                           filetypes=[("Pixel Morph settings", "*.json")])
        if not path:
            return
        try:
            self.sim.save_config(path)
        except OSError as e:
            logger.warning(f"save failed: {e}")

    def load_settings(self):
        path = file_dialog(defaultextension=".json",
                           filetypes=[("Pixel Morph settings", "*.json")])
        if not path:
            return
        try:
            self.sim.load_config(path)
        except (OSError, ValueError) as e:
            logger.warning(f"load failed: {e}")
            return
        self.s_density.val = self.sim.density
        self.s_res.val     = self.sim.stride
        self.t_random.on   = self.sim.random_pixels
        if self.t_random.on:
            self.t_cycle.on = False
        self.t_favor.on    = self.sim.assigner.favor_colors
        self._sync_controls()

    # ──────────────────────────────────────────────────────────────────────────
    #  DRAW
    # ──────────────────────────────────────────────────────────────────────────

    def _draw_canvas(self):
        if self.t_trails.on:
            self.canvas.blit(self._fade, (0, 0))
        else:
            self.canvas.fill(BG)
        paint_particles(self.canvas, self.sim.parts)
        self.screen.blit(self.canvas, (0, 0))
        if self.drawing:
            pygame.draw.rect(self.screen, ACC, self.canvas_rect, 1)

    def _draw_status(self):
        surf = self.screen
        y0 = CANVAS_H
        surf.fill(PNL_DK, pygame.Rect(0, y0, CANVAS_W, STATUS_H))
        pygame.draw.line(surf, BDR, (0, y0), (CANVAS_W, y0), 1)

        status = self.status
        now = pygame.time.get_ticks()
        if self.phase.pending:
            secs = math.ceil(self.phase.remaining(now) / 1000)
            status = f"Morphing in {secs}s..."
        col = {"Morphing...": ACC, "Drawing...": SUC_H, "Complete!": BAR}.get(status, DIM)
        txt(surf, status, PAD * 2, y0 + 14, FLG, col)

        st = self.stats
        txt(surf, f"Pixels: {st.total}", PAD * 2, y0 + 44, FMD, TXT)
        txt(surf, f"Morphed: {st.percent}%", PAD * 2 + 140, y0 + 44, FMD, TXT)
        txt(surf, f"Targets: {len(self.sim.pool)}", PAD * 2 + 290, y0 + 44, FMD, DIM)

        bar = pygame.Rect(PAD * 2, y0 + 74, CANVAS_W - PAD * 4, 14)
        rrect(surf, SLB, bar, 6)
        if st.percent:
            rrect(surf, BAR, pygame.Rect(bar.x, bar.y, int(bar.w * st.percent / 100), bar.h), 6)
        txt(surf, f"{st.percent}% Complete", bar.centerx, bar.bottom + 6, FSM, DIM, "midtop")

        if self._flash:
            msg, until = self._flash
            if now < until:
                txt(surf, msg, CANVAS_W - PAD * 2, y0 + 14, FMD, DNG_H, "topright")
            else:
                self._flash = None
        txt(surf, "H for help", CANVAS_W - PAD * 2, WIN_H - PAD, FSM, DIM, "bottomright")

    def _draw_panel(self):
        surf = self.screen
        px   = CANVAS_W
        pw   = PANEL_W
        mpos = pygame.mouse.get_pos()

        surf.fill(PNL, pygame.Rect(px, 0, pw, WIN_H))
        pygame.draw.line(surf, BDR, (px, 0), (px, WIN_H), 2)

        # ── Header ────────────────────────────────────────────────────────────
        rrect(surf, PNL_DK, pygame.Rect(px, 0, pw, 48))
        txt(surf, "Pixel Morph", px + PAD, 12, FXL, TXT)
        txt(surf, "v1.0", px + pw - PAD, 14, FSM, DIM, "topright")

        # ── Brush ─────────────────────────────────────────────────────────────
        txt(surf, "Brush", px + PAD, 56, FLG, TXT)
        self.picker.draw(surf)
        cur = self.picker.color
        for r, col in self._preset_rects:
            rrect(surf, col, r, bw=2 if col == cur else 1, bc=TXT if col == cur else BDR)

        swatch = pygame.Rect(px + 164, self.picker.hue_rect.y - 8, 36, 24)
        rrect(surf, cur, swatch, bw=1)
        try:
            cname = colornames.find(*cur)
        except Exception:
            cname = "?"
        txt(surf, cname, px + PAD, self.picker.hue_rect.bottom + 6, FSM, DIM)

        # ── Sliders / toggles ─────────────────────────────────────────────────
        self.s_density.draw(surf)
        self.s_res.draw(surf)
        for t in (self.t_random, self.t_cycle, self.t_favor, self.t_trails):
            t.draw(surf)

        for b in self._buttons:
            b.update(mpos)
            b.draw(surf)

    def _draw_help(self):
        surf = self.screen
        box = pygame.Rect(0, 0, 440, 60 + 22 * len(HELP_LINES))
        box.center = self.canvas_rect.center
        shade = pygame.Surface((WIN_W, WIN_H), pygame.SRCALPHA)
        shade.fill((0, 0, 0, 150))
        surf.blit(shade, (0, 0))
        rrect(surf, PNL, box, 8, bw=1)
        txt(surf, "How it works", box.x + 16, box.y + 14, FLG, TXT)
        y = box.y + 44
        for line in HELP_LINES:
            txt(surf, line, box.x + 16, y, FMD, TXT if line else DIM)
            y += 22

    # ──────────────────────────────────────────────────────────────────────────
    #  EVENT HANDLING
    # ──────────────────────────────────────────────────────────────────────────

    def _handle_key(self, ev):
        if ev.mod & pygame.KMOD_CTRL:
            if ev.key == pygame.K_s:
                self.save_settings()
            elif ev.key == pygame.K_o:
                self.load_settings()
            return
        if ev.key == pygame.K_c:
            self.clear()
        elif ev.key == pygame.K_d:
            self.save_png()
        elif ev.key == pygame.K_u:
            self.upload_image()
        elif ev.key == pygame.K_h:
            self.show_help = not self.show_help
        elif ev.key == pygame.K_ESCAPE:
            self.show_help = False

    def _handle_events(self):
        for ev in pygame.event.get():
            if ev.type == pygame.QUIT:
                self.stop()
                return

            if ev.type == pygame.KEYDOWN:
                self._handle_key(ev)
                continue

            # Help overlay swallows clicks
            if self.show_help:
                if ev.type == pygame.MOUSEBUTTONDOWN:
                    self.show_help = False
                continue

            # ── Drawing ───────────────────────────────────────────────────
            if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1 \
                    and self.canvas_rect.collidepoint(ev.pos):
                self._start_drawing(ev.pos)
                continue
            if self.drawing:
                if ev.type == pygame.MOUSEMOTION:
                    if self.canvas_rect.collidepoint(ev.pos):
                        self._draw_at(ev.pos)
                    else:
                        self._stop_drawing()
                elif ev.type == pygame.MOUSEBUTTONUP and ev.button == 1:
                    self._stop_drawing()
                elif ev.type == pygame.WINDOWLEAVE:
                    self._stop_drawing()
                continue

            # ── Panel widgets ─────────────────────────────────────────────
            if ev.type == pygame.MOUSEBUTTONDOWN and ev.button == 1:
                mp = ev.pos
                for r, col in self._preset_rects:
                    if r.collidepoint(mp):
                        self.picker.color = col
                if self.t_random.clicked(mp):
                    self.t_random.on = not self.t_random.on
                    if self.t_random.on:
                        self.t_cycle.on = False
                elif self.t_cycle.clicked(mp):
                    self.t_cycle.on = not self.t_cycle.on
                    if self.t_cycle.on:
                        self.t_random.on = False
                elif self.t_favor.clicked(mp):
                    self.t_favor.on = not self.t_favor.on
                elif self.t_trails.clicked(mp):
                    self.t_trails.on = not self.t_trails.on
                if self.btn_upload.clicked(mp):
                    self.upload_image()
                elif self.btn_save.clicked(mp):
                    self.save_png()
                elif self.btn_clear.clicked(mp):
                    self.clear()

            self.s_density.handle(ev)
            if self.s_res.handle(ev):
                self.sim.set_resolution(self.s_res.val)
            self.picker.handle(ev)
            self._sync_controls()

    # ──────────────────────────────────────────────────────────────────────────
    #  MAIN LOOP
    # ──────────────────────────────────────────────────────────────────────────

    def stop(self):
        self.running = False

    def run(self):
        self.running = True
        while self.running:
            self._handle_events()
            if not self.running:
                break

            if self.phase.poll(pygame.time.get_ticks()):
                self.sim.begin_morph()
                self.status = "Morphing..."

            self.sim.tick()
            if self.sim.morphing and self.sim.frame % 30 == 0:
                self._refresh_stats()

            self._draw_canvas()
            self._draw_status()
            self._draw_panel()
            if self.show_help:
                self._draw_help()

            pygame.display.flip()
            self.clock.tick(FPS)
        pygame.quit()


# ═══════════════════════════════════════════════════════════════════════════════

def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    seed = os.getenv("PIXELMORPH_SEED")
    app = App(seed=int(seed) if seed else None, image=os.getenv("PIXELMORPH_IMAGE"))
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
