"""
Tests for the HTTP ERP client and adapter.
"""

from decimal import Decimal
from unittest import mock

import requests
from django.test import SimpleTestCase

from ..adapters.erp_adapter import DeliveryNoteLine
from ..adapters.erp_client import ErpHttpClient, HttpErpAdapter, extract_error_message, map_status
from ..exceptions import ErpOrderReferenceError, ErpRejectionError, ErpTransportError


def fake_response(status_code=200, body=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = b'{}' if body is not None else b''
    response.json.return_value = body
    response.text = str(body)
    return response


LOGIN = fake_response(200, {'access_token': 'token-1', 'expires_in': 3600})


class ErpHttpClientTest(SimpleTestCase):

    def setUp(self):
        self.session = mock.Mock()
        self.client = ErpHttpClient(
            'https://erp.example.com/api/', 'svc', 'secret', branch_code=3, timeout_s=5, session=self.session
        )

    def test_logs_in_before_first_request(self):
        self.session.request.side_effect = [LOGIN, fake_response(200, {'OrderReference': 'SO-1'})]

        body = self.client.request('GET', 'Orders/SO-1')

        self.assertEqual(body, {'OrderReference': 'SO-1'})
        login_call, get_call = self.session.request.call_args_list
        self.assertEqual(login_call.kwargs['url'], 'https://erp.example.com/api/auth/login')
        self.assertEqual(login_call.kwargs['json'], {'BranchCode': 3, 'Username': 'svc', 'Password': 'secret'})
        self.assertEqual(get_call.kwargs['headers']['Authorization'], 'Bearer token-1')
        self.assertEqual(get_call.kwargs['timeout'], 5)

    def test_reauthenticates_once_on_401(self):
        self.session.request.side_effect = [
            LOGIN,
            fake_response(401, {'message': 'token expired'}),
            fake_response(200, {'access_token': 'token-2', 'expires_in': 3600}),
            fake_response(200, {'ok': True}),
        ]

        self.assertEqual(self.client.request('GET', 'Orders/SO-1'), {'ok': True})
        self.assertEqual(self.client.access_token, 'token-2')
        self.assertEqual(self.session.request.call_count, 4)

    def test_timeout_is_a_transport_error(self):
        self.session.request.side_effect = [LOGIN, requests.Timeout('slow')]

        with self.assertRaises(ErpTransportError) as ctx:
            self.client.request('POST', 'ItemSlips', json={})
        self.assertEqual(ctx.exception.error_code, 'timeout')

    def test_server_error_is_a_transport_error(self):
        self.session.request.side_effect = [LOGIN, fake_response(503, {'message': 'maintenance'})]

        with self.assertRaises(ErpTransportError) as ctx:
            self.client.request('POST', 'ItemSlips', json={})
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(ctx.exception.error_code, 'server_error')

    def test_client_error_is_a_rejection(self):
        self.session.request.side_effect = [LOGIN, fake_response(422, {'message': 'bad stock code'})]

        with self.assertRaises(ErpRejectionError) as ctx:
            self.client.request('POST', 'ItemSlips', json={})
        self.assertIn('bad stock code', str(ctx.exception))
        self.assertEqual(ctx.exception.payload, {'message': 'bad stock code'})

    def test_invalid_token_lifetime_is_a_rejection(self):
        self.session.request.return_value = fake_response(200, {'access_token': 't', 'expires_in': '1h'})

        with self.assertRaises(ErpRejectionError) as ctx:
            self.client.request('GET', 'Orders/SO-1')
        self.assertEqual(ctx.exception.error_code, 'authentication_error')
        self.assertIsNone(self.client.access_token)

    def test_non_object_body_is_a_rejection(self):
        self.session.request.side_effect = [LOGIN, fake_response(200, ['IRS-1'])]

        with self.assertRaises(ErpRejectionError) as ctx:
            self.client.request('POST', 'ItemSlips', json={})
        self.assertEqual(ctx.exception.error_code, 'malformed_response')
        self.assertEqual(ctx.exception.payload, {'data': ['IRS-1']})

    def test_status_mapping(self):
        self.assertEqual(map_status(None), 'network_error')
        self.assertEqual(map_status(404), 'resource_not_found')
        self.assertEqual(map_status(502), 'server_error')
        self.assertEqual(map_status(418), 'unknown_error')
        self.assertEqual(extract_error_message({'ErrorDesc': 'locked'}), 'locked')


class HttpErpAdapterTest(SimpleTestCase):

    def setUp(self):
        self.client = mock.Mock(spec=ErpHttpClient)
        self.adapter = HttpErpAdapter(self.client)
        self.lines = [
            DeliveryNoteLine('ERP-LM', 3, Decimal('12.50'), 'Lamp', 1),
            DeliveryNoteLine('ERP-SH', 1, Decimal('4.00'), 'Shade', 2),
        ]

    def test_creates_header_and_lines(self):
        self.client.request.side_effect = [{'CustomerCode': 'C-9'}, {'DocumentNumber': 'IRS-77'}, {}, {}]

        note_id = self.adapter.create_lines_under_note('SO-1', self.lines)

        self.assertEqual(note_id, 'IRS-77')
        calls = self.client.request.call_args_list
        self.assertEqual(calls[0].args, ('GET', 'Orders/SO-1'))
        self.assertEqual(calls[1].kwargs['json']['CustomerCode'], 'C-9')
        self.assertEqual(calls[2].args, ('POST', 'ItemSlips/IRS-77/Lines'))
        self.assertEqual(calls[2].kwargs['json']['Quantity'], 3)
        self.assertEqual(calls[2].kwargs['json']['UnitPrice'], '12.50')

    def test_unknown_order_reference(self):
        self.client.request.side_effect = ErpRejectionError('not found', status_code=404)

        with self.assertRaises(ErpOrderReferenceError):
            self.adapter.create_lines_under_note('SO-404', self.lines)

    def test_line_failure_reports_partial_note(self):
        self.client.request.side_effect = [
            {}, {'id': 15}, {}, ErpRejectionError('bad line', status_code=400),
        ]

        with self.assertRaises(ErpRejectionError) as ctx:
            self.adapter.create_lines_under_note('SO-1', self.lines)
        self.assertEqual(ctx.exception.payload['note_id'], '15')
        self.assertEqual(ctx.exception.payload['lines_created'], 1)

    def test_conversion(self):
        self.client.request.return_value = {'Id': 'IRS-78'}

        self.assertEqual(self.adapter.convert_order_to_note('SO-1'), 'IRS-78')
        self.client.request.assert_called_once_with('POST', 'ItemSlips/FromOrder', json={'OrderReference': 'SO-1'})

    def test_missing_note_id(self):
        self.client.request.return_value = {'status': 'ok'}

        with self.assertRaises(ErpRejectionError) as ctx:
            self.adapter.convert_order_to_note('SO-1')
        self.assertEqual(ctx.exception.error_code, 'missing_note_id')
