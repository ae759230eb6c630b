"""
PDF documents rendered with reportlab's canvas API.

Every ``render_*`` function returns the document as bytes; views wrap
them in an attachment response.
"""
from __future__ import annotations

import hashlib
import io
import textwrap
from typing import Iterable, Sequence

from django.conf import settings
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from care.models import Appointment, PatientRecord, Prescription, Receipt
from care.services.labs import lab_label


class ClinicPDF:
    """A single document with the clinic banner and a running cursor."""

    def __init__(self, title: str, reference: str = ''):
        self.width, self.height = A4
        self.margin = 30
        self.title = title
        self.reference = reference

        self.primary_color = colors.HexColor('#1e40af')
        self.secondary_color = colors.HexColor('#3b82f6')
        self.text_color = colors.HexColor('#1f2937')
        self.light_bg = colors.HexColor('#f0f9ff')
        self.border_color = colors.HexColor('#e2e8f0')

        self.buffer = io.BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=A4)
        self.c.setTitle(title)
        self._start_page()

    def _start_page(self) -> None:
        c = self.c
        c.setFillColor(self.primary_color)
        c.rect(0, self.height - 100, self.width, 100, fill=True, stroke=False)
        c.setFillColor(colors.white)
        c.setFont('Helvetica-Bold', 24)
        c.drawString(self.margin, self.height - 50, settings.CLINIC_NAME)
        c.setFont('Helvetica', 12)
        c.drawString(self.margin, self.height - 72, 'Professional Healthcare Services')

        c.setFillColor(self.secondary_color)
        c.rect(self.margin, self.height - 145, self.width - 2 * self.margin, 30, fill=True, stroke=False)
        c.setFillColor(colors.white)
        c.setFont('Helvetica-Bold', 16)
        c.drawString(self.margin + 10, self.height - 135, self.title)
        if self.reference:
            c.setFont('Helvetica', 10)
            c.drawRightString(self.width - self.margin - 10, self.height - 135, self.reference)
        self.y = self.height - 175

    def _ensure(self, needed: float) -> None:
        if self.y - needed < 70:
            self._footer()
            self.c.showPage()
            self._start_page()

    def section(self, heading: str) -> None:
        self._ensure(40)
        self.y -= 8
        self.c.setFillColor(self.primary_color)
        self.c.setFont('Helvetica-Bold', 12)
        self.c.drawString(self.margin, self.y, heading)
        self.y -= 18

    def field(self, label: str, value) -> None:
        self._ensure(16)
        self.c.setFillColor(self.text_color)
        self.c.setFont('Helvetica-Bold', 10)
        self.c.drawString(self.margin + 10, self.y, f'{label}:')
        self.c.setFont('Helvetica', 10)
        self.c.drawString(self.margin + 140, self.y, '' if value is None else str(value))
        self.y -= 15

    def paragraph(self, text: str, width: int = 95) -> None:
        self.c.setFillColor(self.text_color)
        self.c.setFont('Helvetica', 10)
        for raw in (text or '-').splitlines() or ['-']:
            for line in textwrap.wrap(raw, width) or ['']:
                self._ensure(14)
                self.c.drawString(self.margin + 10, self.y, line)
                self.y -= 14

    def table(self, headers: Sequence[str], rows: Iterable[Sequence], widths: Sequence[float]) -> None:
        def draw_row(values, bold=False):
            self._ensure(18)
            x = self.margin
            if bold:
                self.c.setFillColor(self.light_bg)
                self.c.rect(self.margin, self.y - 4, sum(widths), 16, fill=True, stroke=False)
            self.c.setFillColor(self.text_color)
            self.c.setFont('Helvetica-Bold' if bold else 'Helvetica', 9)
            for value, w in zip(values, widths):
                text = '' if value is None else str(value)
                max_chars = max(4, int(w / 5))
                if len(text) > max_chars:
                    text = text[:max_chars - 1] + '…'
                self.c.drawString(x + 4, self.y, text)
                x += w
            self.c.setStrokeColor(self.border_color)
            self.c.line(self.margin, self.y - 5, self.margin + sum(widths), self.y - 5)
            self.y -= 17

        draw_row(headers, bold=True)
        empty = True
        for row in rows:
            empty = False
            draw_row(row)
        if empty:
            draw_row(['No data'])

    def _footer(self) -> None:
        now = timezone.localtime()
        verification_id = hashlib.sha256(f'{self.reference}{self.title}'.encode()).hexdigest()[:8]
        self.c.setFillColor(self.text_color)
        self.c.setFont('Helvetica', 8)
        self.c.drawString(self.margin, 45, f"Generated: {now:%Y-%m-%d %H:%M:%S}")
        self.c.drawString(self.margin, 32, f'Verification ID: {verification_id}')
        self.c.drawRightString(self.width - self.margin, 32, f'Page {self.c.getPageNumber()}')

    def finish(self) -> bytes:
        self._footer()
        self.c.save()
        return self.buffer.getvalue()


def _long_date(d) -> str:
    return f"{d:%B} {d.day}, {d.year}"


def render_appointment(a: Appointment) -> bytes:
    doc = ClinicPDF('Appointment Slip', a.reference_number)
    doc.section('Appointment')
    doc.field('Reference', a.reference_number)
    doc.field('Date', _long_date(a.appointment_date))
    doc.field('Time', a.appointment_time.strftime('%I:%M %p'))
    doc.field('Status', a.get_status_display())
    doc.field('Service', a.service.name if a.service_id else 'Consultation')
    doc.field('Fee', a.fee)
    doc.section('Patient')
    doc.field('Name', a.patient.display_name)
    doc.field('Phone', a.patient.phone or '-')
    doc.section('Doctor')
    doc.field('Name', f'Dr. {a.doctor.display_name}')
    profile = getattr(a.doctor, 'doctor_profile', None)
    doc.field('Specialty', profile.specialty if profile else '-')
    doc.section('Reason for visit')
    doc.paragraph(a.reason)
    if a.doctor_notes:
        doc.section('Doctor notes')
        doc.paragraph(a.doctor_notes)
    return doc.finish()


def _vitals(doc: ClinicPDF, vitals: dict) -> None:
    if not vitals:
        return
    doc.section('Vital signs')
    for key, value in vitals.items():
        doc.field(key.replace('_', ' ').capitalize(), value)


def _prescription_rows(prescriptions: Iterable[Prescription]):
    for p in prescriptions:
        yield [p.reference_number, p.medication, p.dosage, p.frequency, p.duration, p.status]


PRESCRIPTION_HEADERS = ['Reference', 'Medication', 'Dosage', 'Frequency', 'Duration', 'Status']
PRESCRIPTION_WIDTHS = [95, 140, 70, 90, 70, 70]


def render_record(r: PatientRecord) -> bytes:
    doc = ClinicPDF('Medical Record', f'#{r.id}')
    doc.section('Patient')
    doc.field('Name', r.patient.display_name)
    doc.field('Record date', _long_date(r.record_date))
    doc.field('Type', r.get_record_type_display())
    doc.field('Doctor', f'Dr. {r.assigned_doctor.display_name}' if r.assigned_doctor_id else '-')
    doc.section('Diagnosis')
    doc.paragraph(r.diagnosis)
    _vitals(doc, r.vital_signs)
    prescriptions = list(r.prescriptions.order_by('id'))
    if prescriptions:
        doc.section('Prescriptions')
        doc.table(PRESCRIPTION_HEADERS, _prescription_rows(prescriptions), PRESCRIPTION_WIDTHS)
    return doc.finish()


def render_prescriptions(r: PatientRecord, prescriptions: Sequence[Prescription]) -> bytes:
    reference = prescriptions[0].reference_number if len(prescriptions) == 1 else f'Record #{r.id}'
    doc = ClinicPDF('Medical Prescription', reference)
    doc.section('Patient information')
    doc.field('Name', r.patient.display_name)
    doc.field('Consulting doctor', f'Dr. {r.assigned_doctor.display_name}' if r.assigned_doctor_id else '-')
    doc.field('Date of visit', _long_date(r.record_date))
    doc.section('Diagnosis')
    doc.paragraph(r.diagnosis)
    doc.section('Prescribed medicines')
    doc.table(PRESCRIPTION_HEADERS, _prescription_rows(prescriptions), PRESCRIPTION_WIDTHS)
    for p in prescriptions:
        if p.instructions:
            doc.field(p.medication, p.instructions)
    doc.paragraph('Digitally generated prescription valid for 30 days. '
                  'Consult your doctor before changing medication.')
    return doc.finish()


def render_lab_result(r: PatientRecord) -> bytes:
    doc = ClinicPDF('Laboratory Result', f'#{r.id}')
    doc.section('Patient')
    doc.field('Name', r.patient.display_name)
    doc.field('Test', lab_label(r.lab_type))
    doc.field('Date', _long_date(r.record_date))
    doc.field('Status', r.get_status_display())
    doc.section('Results')
    doc.table(
        ['Test', 'Value', 'Unit', 'Reference range', 'Flag'],
        ([i.get('name'), i.get('value'), i.get('unit'), i.get('reference_range'), i.get('flag')]
         for i in r.lab_results or []),
        [150, 90, 70, 150, 75],
    )
    if r.lab_summary:
        doc.section('Summary')
        doc.paragraph(r.lab_summary)
    return doc.finish()


def render_receipt(r: Receipt) -> bytes:
    doc = ClinicPDF('Official Receipt', r.receipt_number)
    doc.section('Receipt')
    doc.field('Receipt number', r.receipt_number)
    doc.field('Issued', timezone.localtime(r.issued_at).strftime('%Y-%m-%d %H:%M'))
    doc.field('Patient', r.patient.display_name)
    if r.appointment_id:
        doc.field('Appointment', r.appointment.reference_number)
        doc.field('Doctor', f'Dr. {r.appointment.doctor.display_name}')
    doc.field('Payment method', r.get_payment_method_display())
    doc.field('Status', r.get_status_display())
    doc.section('Amount')
    doc.field('Total', r.amount)
    if r.notes:
        doc.section('Notes')
        doc.paragraph(r.notes)
    return doc.finish()


def render_report(title: str, period: str, summary: dict, headers: Sequence[str],
                  rows: Iterable[Sequence], widths: Sequence[float]) -> bytes:
    doc = ClinicPDF(title, period)
    if summary:
        doc.section('Summary')
        for label, value in summary.items():
            doc.field(label, value)
    if headers:
        doc.section('Details')
        doc.table(headers, rows, widths)
    return doc.finish()
