from rest_framework import status as http_status
from rest_framework.response import Response


def send_list(data, pagination, status=http_status.HTTP_200_OK):
    return Response({"data": data, "pagination": pagination}, status=status)


def send_data(data, status=http_status.HTTP_200_OK):
    return Response({"data": data}, status=status)


def send_message(message, data=None, status=http_status.HTTP_200_OK):
    body = {"message": message}
    if data is not None:
        body["data"] = data
    return Response(body, status=status)


def send_error(error, status=http_status.HTTP_400_BAD_REQUEST):
    return Response({"error": error}, status=status)
