"""
Thermal Stack FEA - Report Generator
====================================
Console text for the stack picture and the convergence summary, and an
optional PDF report.

Version: 1.0.0
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

if TYPE_CHECKING:
    from ..solvers.thermal_solver import ConvergenceResult, ThermalStack


BAR_WIDTH = 20


def block_bar(x_element_count: int, x_element_count_max: int, width: int = BAR_WIDTH) -> str:
    """Centred dash bar whose length is proportional to the block's X extent."""
    dash_count = int(round(x_element_count / x_element_count_max * (width // 2))) * 2
    start = (width - dash_count) // 2
    end = width - start
    return ''.join('-' if start <= j < end else ' ' for j in range(width))


def illustrate(stack: 'ThermalStack') -> List[str]:
    """Side view of the stack with per-block statistics."""
    lines = [
        f"{'':10s}{'':{BAR_WIDTH}s}  {'Matl':<12s}{'T_avg':>12s}{'T_var':>10s}{'Q_gen':>10s}{'Vol':>14s}",
    ]
    x_max = max(b.x_element_count for b in stack.blocks)
    meshed = stack.mesh_data is not None

    for i, block in enumerate(stack.blocks):
        if meshed:
            t_avg = f"{block.get_bulk_temp(stack.elements):.2f} C"
            t_var = f"{block.get_temp_non_uniformity(stack.elements):.2f} C"
        else:
            t_avg = t_var = "-"
        lines.append(
            f"Block {i:<4d}{block_bar(block.x_element_count, x_max)}  "
            f"{block.material_name:<12.12s}{t_avg:>12s}{t_var:>10s}"
            f"{block.heat_generation:>8.1f} W{block.volume:>9.1f} mm^3"
        )
    return lines


def format_solver_header(stack: 'ThermalStack') -> List[str]:
    """Solver settings printed before marching."""
    p = stack.params
    block = stack.blocks[stack.block_index]
    return [
        f"Monitoring block {stack.block_index}, {block.material_name}, "
        f"generating {block.heat_generation:g} W",
        f"Mesh Size = {p.mesh_size_mm:.2f} mm",
        f"Time Step = {p.timestep_s:.6f} sec",
        f"Sampling Time Interval = {p.sample_interval_s:.6f} sec",
        f"Convergence dT/dt_Target = {p.convergence_threshold_c / p.sample_interval_s:.3f} C/sec",
        f"t = 0 seconds         T_avg = {p.initial_temp_c:.3f} C",
    ]


def format_wall_time(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes} minutes and {secs} seconds"


def format_convergence_report(result: 'ConvergenceResult') -> str:
    """Time constant, steady state and thermal impedance summary."""
    status = "Converged" if result.converged else "Stopped without converging"
    lines = [
        f"t = {result.tau_time_s:.6f} seconds     T_avg = {result.tau_temp_c:.3f} C   <- @ one time constant",
        f"t = {result.steady_time_s:.6f} seconds     T_avg = {result.steady_temp_c:.3f} C   <- @ steady state",
        "",
        f"{status} after {result.steps} steps in {format_wall_time(result.wall_time_s)}",
        f"Thermal impedance, heat source to heatsink = {result.thermal_impedance:.3f} K/W",
    ]
    return "\n".join(lines)


@dataclass
class ReportSettings:
    """Settings for PDF report generation."""
    title: str = "Thermal Stack Analysis Report"
    project_name: str = ""
    author: str = ""
    page_size: str = "letter"  # 'letter' or 'A4'


HEADER_STYLE = [
    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1976D2')),
    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ('FONTSIZE', (0, 0), (-1, -1), 9),
    ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F5F5F5')]),
]


class PDFReportGenerator:
    """Generate a PDF summary of a solved stack."""

    def __init__(self, settings: Optional[ReportSettings] = None):
        self.settings = settings or ReportSettings()

    def generate(self, output_path: str, stack: 'ThermalStack',
                 result: 'ConvergenceResult'):
        """Write the report to ``output_path``."""
        page_size = A4 if self.settings.page_size.lower() == 'a4' else letter
        doc = SimpleDocTemplate(
            str(output_path),
            pagesize=page_size,
            rightMargin=0.75*inch,
            leftMargin=0.75*inch,
            topMargin=0.75*inch,
            bottomMargin=0.75*inch
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            'StackTitle',
            parent=styles['Heading1'],
            fontSize=20,
            spaceAfter=20,
            alignment=TA_CENTER
        )

        story = [Paragraph(self.settings.title, title_style)]
        if self.settings.project_name:
            story.append(Paragraph(f"Project: {self.settings.project_name}", styles['Heading2']))
        story.append(Paragraph(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}", styles['Normal']))
        if self.settings.author:
            story.append(Paragraph(f"Author: {self.settings.author}", styles['Normal']))
        story.append(Spacer(1, 0.3*inch))

        story.append(Paragraph("Summary", styles['Heading2']))
        summary = [
            ["Parameter", "Value"],
            ["Status", "Converged" if result.converged else "Not converged"],
            ["Monitored Block", str(result.monitored_block)],
            ["Initial Temperature", f"{result.initial_temp_c:.3f} °C"],
            ["Steady-State Temperature", f"{result.steady_temp_c:.3f} °C"],
            ["Time to Steady State", f"{result.steady_time_s:.6f} s"],
            ["Time Constant (tau)", f"{result.tau_time_s:.6f} s"],
            ["Temperature at tau", f"{result.tau_temp_c:.3f} °C"],
            ["Thermal Impedance", f"{result.thermal_impedance:.4f} K/W"],
            ["Steps", str(result.steps)],
            ["Compute Time", format_wall_time(result.wall_time_s)],
        ]
        table = Table(summary, colWidths=[3*inch, 2.5*inch])
        table.setStyle(TableStyle(HEADER_STYLE))
        story.append(table)
        story.append(Spacer(1, 0.3*inch))

        story.append(Paragraph("Solver Parameters", styles['Heading2']))
        p = stack.params
        params = [
            ["Parameter", "Value"],
            ["Mesh Size", f"{p.mesh_size_mm} mm"],
            ["Time Step", f"{p.timestep_s} s"],
            ["Sample Interval", f"{p.sample_interval_steps} steps"],
            ["Convergence Threshold", f"{p.convergence_threshold_c} °C"],
            ["Initial Temperature", f"{p.initial_temp_c} °C"],
        ]
        table = Table(params, colWidths=[3*inch, 2.5*inch])
        table.setStyle(TableStyle(HEADER_STYLE))
        story.append(table)
        story.append(Spacer(1, 0.3*inch))

        story.append(Paragraph("Blocks", styles['Heading2']))
        rows = [["#", "Material", "Size (mm)", "Elements", "Q (W)", "T_avg (°C)", "T_var (°C)"]]
        for i, block in enumerate(stack.blocks):
            rows.append([
                str(i),
                block.material_name,
                f"{block.x_length:g} x {block.y_length:g} x {block.z_length:g}",
                f"{block.x_element_count}x{block.y_element_count}x{block.z_element_count}",
                f"{block.heat_generation:g}",
                f"{block.get_bulk_temp(stack.elements):.3f}",
                f"{block.get_temp_non_uniformity(stack.elements):.3f}",
            ])
        table = Table(rows)
        table.setStyle(TableStyle(HEADER_STYLE))
        story.append(table)

        doc.build(story)


def generate_report(output_path: str, stack: 'ThermalStack', result: 'ConvergenceResult',
                    settings: Optional[ReportSettings] = None):
    """Convenience wrapper around PDFReportGenerator."""
    PDFReportGenerator(settings).generate(output_path, stack, result)


__all__ = [
    'illustrate',
    'block_bar',
    'format_solver_header',
    'format_convergence_report',
    'format_wall_time',
    'ReportSettings',
    'PDFReportGenerator',
    'generate_report',
]
